from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from utils.export import build_connections_workbook, consolidate_equipment, workbook_response

router = APIRouter(prefix="/api", tags=["Export"])


@router.get("/export/connections")
def export_connections(db: Session = Depends(get_db)):
    """Download the projector dataset with link status as an Excel file."""
    wb, _stats = build_connections_workbook(db)
    filename = f"projector_connections_{date.today().isoformat()}.xlsx"
    return workbook_response(wb, filename)


@router.get("/export/connections/stats")
def export_connections_stats(db: Session = Depends(get_db)):
    _wb, stats = build_connections_workbook(db)
    return stats


@router.get("/consolidation")
def consolidation(db: Session = Depends(get_db)):
    items = consolidate_equipment(db)
    return {
        "items": items,
        "total": len(items),
        "both": sum(1 for i in items if i["source"] == "both"),
    }
