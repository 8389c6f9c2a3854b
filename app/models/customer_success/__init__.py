# Customer Success Models
from app.models.customer_success.alert_state import AlertState, AlertStateNote, AlertActionLogEntry

__all__ = [
    # Alert lifecycle
    "AlertState",
    "AlertStateNote",
    "AlertActionLogEntry",
]
