"""Public endpoints used by the embeddable chat widget."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from chatdesk.core.deps import get_db, get_presence_store
from chatdesk.core.presence import PresenceStore
from chatdesk.schemas.widget import OnlineAgent, WidgetConfig
from chatdesk.services import widget_service

router = APIRouter(prefix="/widget", tags=["widget"])


@router.get("/config/{widget_key}", response_model=WidgetConfig)
def get_widget_config(widget_key: str, db: Session = Depends(get_db)):
    return widget_service.get_widget_config(db, widget_key)


@router.get("/online-agents", response_model=list[OnlineAgent])
async def get_online_agents(
    widget_key: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    presence: PresenceStore = Depends(get_presence_store),
):
    """Agents currently connected for the widget's company."""
    return await widget_service.get_online_agents(db, presence, widget_key)
