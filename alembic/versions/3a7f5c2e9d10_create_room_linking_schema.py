"""create room linking schema

Revision ID: 3a7f5c2e9d10
Revises:
Create Date: 2025-02-14
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3a7f5c2e9d10"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(64), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(120), server_default=""),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("role", sa.String(16), server_default="user"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_username", "users", ["username"])

    op.create_table(
        "role_change_audit",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "changed_by",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "target_user",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("old_role", sa.String(16)),
        sa.Column("new_role", sa.String(16)),
        sa.Column("changed_at", sa.DateTime()),
    )
    op.create_index(
        "ix_role_change_audit_target_user", "role_change_audit", ["target_user"]
    )

    op.create_table(
        "departments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        *_timestamps(),
    )
    op.create_index("ix_departments_name", "departments", ["name"])

    op.create_table(
        "department_aliases",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("alias", sa.String(255), nullable=False, unique=True),
        sa.Column("canonical", sa.String(255), nullable=False),
    )
    op.create_index(
        "ix_department_aliases_canonical", "department_aliases", ["canonical"]
    )

    op.create_table(
        "department_mappings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("turar_department", sa.String(255), nullable=False),
        sa.Column("projector_department", sa.String(255), nullable=False),
        sa.Column(
            "turar_department_id",
            sa.Integer(),
            sa.ForeignKey("departments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "projector_department_id",
            sa.Integer(),
            sa.ForeignKey("departments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.UniqueConstraint(
            "turar_department", "projector_department", name="uq_department_mapping"
        ),
    )
    op.create_index(
        "ix_department_mappings_turar_department",
        "department_mappings",
        ["turar_department"],
    )
    op.create_index(
        "ix_department_mappings_projector_department",
        "department_mappings",
        ["projector_department"],
    )

    op.create_table(
        "projector_floors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("floor", sa.Float(), nullable=False),
        sa.Column("block", sa.String(100), nullable=False),
        sa.Column("department", sa.String(255), nullable=False),
        sa.Column("room_code", sa.String(100), nullable=False),
        sa.Column("room_name", sa.String(255), nullable=False),
        sa.Column("area", sa.Float(), nullable=True),
        sa.Column("equipment_code", sa.String(100)),
        sa.Column("equipment_name", sa.String(255)),
        sa.Column("equipment_unit", sa.String(50)),
        sa.Column("equipment_quantity", sa.String(50)),
        sa.Column("equipment_notes", sa.Text()),
        sa.Column("equipment_status", sa.String(50)),
        sa.Column("equipment_specification", sa.Text()),
        sa.Column("equipment_documents", sa.Text()),
        sa.Column(
            "department_id",
            sa.Integer(),
            sa.ForeignKey("departments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("connected_turar_department", sa.String(255)),
        sa.Column("connected_turar_room", sa.String(255)),
        sa.Column("connected_turar_room_id", sa.Integer()),
        *_timestamps(),
    )
    op.create_index("ix_projector_floors_department", "projector_floors", ["department"])
    op.create_index("ix_projector_floors_room_name", "projector_floors", ["room_name"])

    op.create_table(
        "turar_medical",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("department", sa.String(255), nullable=False),
        sa.Column("room_name", sa.String(255), nullable=False),
        sa.Column("equipment_code", sa.String(100), nullable=False),
        sa.Column("equipment_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "department_id",
            sa.Integer(),
            sa.ForeignKey("departments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("connected_projector_department", sa.String(255)),
        sa.Column("connected_projector_room", sa.String(255)),
        sa.Column("connected_projector_room_id", sa.Integer()),
        *_timestamps(),
    )
    op.create_index("ix_turar_medical_department", "turar_medical", ["department"])
    op.create_index("ix_turar_medical_room_name", "turar_medical", ["room_name"])

    op.create_table(
        "room_connections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("turar_department", sa.String(255), nullable=False),
        sa.Column("turar_room", sa.String(255), nullable=False),
        sa.Column("projector_department", sa.String(255), nullable=False),
        sa.Column("projector_room", sa.String(255), nullable=False),
        sa.Column("turar_department_id", sa.Integer(), nullable=True),
        sa.Column("turar_room_id", sa.Integer(), nullable=True),
        sa.Column("projector_department_id", sa.Integer(), nullable=True),
        sa.Column("projector_room_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "turar_department",
            "turar_room",
            "projector_department",
            "projector_room",
            name="uq_room_connection",
        ),
    )
    op.create_index(
        "ix_room_connections_turar_department", "room_connections", ["turar_department"]
    )
    op.create_index(
        "ix_room_connections_projector_department",
        "room_connections",
        ["projector_department"],
    )

    op.create_table(
        "mapped_projector_rooms",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "department_mapping_id",
            sa.Integer(),
            sa.ForeignKey("department_mappings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("original_record_id", sa.Integer(), nullable=False),
        sa.Column("floor_number", sa.Float(), nullable=False),
        sa.Column("block_name", sa.String(100), nullable=False),
        sa.Column("department_name", sa.String(255), nullable=False),
        sa.Column("room_code", sa.String(100), nullable=False),
        sa.Column("room_name", sa.String(255), nullable=False),
        sa.Column("room_area", sa.Float()),
        sa.Column("equipment_code", sa.String(100)),
        sa.Column("equipment_name", sa.String(255)),
        sa.Column("equipment_unit", sa.String(50)),
        sa.Column("equipment_quantity", sa.String(50)),
        sa.Column("equipment_notes", sa.Text()),
        sa.Column("is_linked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("linked_turar_room_id", sa.Integer()),
        *_timestamps(),
    )
    op.create_index(
        "ix_mapped_projector_rooms_department_mapping_id",
        "mapped_projector_rooms",
        ["department_mapping_id"],
    )
    op.create_index(
        "ix_mapped_projector_rooms_original_record_id",
        "mapped_projector_rooms",
        ["original_record_id"],
    )

    op.create_table(
        "mapped_turar_rooms",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "department_mapping_id",
            sa.Integer(),
            sa.ForeignKey("department_mappings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("original_record_id", sa.Integer(), nullable=False),
        sa.Column("department_name", sa.String(255), nullable=False),
        sa.Column("room_name", sa.String(255), nullable=False),
        sa.Column("equipment_code", sa.String(100), nullable=False),
        sa.Column("equipment_name", sa.String(255), nullable=False),
        sa.Column("equipment_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_linked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("linked_projector_room_id", sa.Integer()),
        *_timestamps(),
    )
    op.create_index(
        "ix_mapped_turar_rooms_department_mapping_id",
        "mapped_turar_rooms",
        ["department_mapping_id"],
    )
    op.create_index(
        "ix_mapped_turar_rooms_original_record_id",
        "mapped_turar_rooms",
        ["original_record_id"],
    )

    op.create_table(
        "equipment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "room_id",
            sa.Integer(),
            sa.ForeignKey("projector_floors.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("equipment_code", sa.String(100)),
        sa.Column("equipment_name", sa.String(255)),
        sa.Column("model_name", sa.String(255)),
        sa.Column("equipment_type", sa.String(100)),
        sa.Column("brand", sa.String(150)),
        sa.Column("country", sa.String(100)),
        sa.Column("specification", sa.Text()),
        sa.Column("documents", sa.JSON()),
        sa.Column("standard", sa.String(255)),
        sa.Column("quantity", sa.Integer()),
        sa.Column("price", sa.Float()),
        sa.Column("purchase_status", sa.String(50)),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
    )
    op.create_index("ix_equipment_room_id", "equipment", ["room_id"])
    op.create_index("ix_equipment_equipment_code", "equipment", ["equipment_code"])


def downgrade() -> None:
    op.drop_index("ix_equipment_equipment_code", table_name="equipment")
    op.drop_index("ix_equipment_room_id", table_name="equipment")
    op.drop_table("equipment")
    op.drop_table("mapped_turar_rooms")
    op.drop_table("mapped_projector_rooms")
    op.drop_table("room_connections")
    op.drop_table("turar_medical")
    op.drop_table("projector_floors")
    op.drop_table("department_mappings")
    op.drop_table("department_aliases")
    op.drop_table("departments")
    op.drop_table("role_change_audit")
    op.drop_table("users")
