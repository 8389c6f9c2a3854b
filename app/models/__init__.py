from app.models.customer_success import AlertState, AlertStateNote, AlertActionLogEntry

__all__ = [
    "AlertState",
    "AlertStateNote",
    "AlertActionLogEntry",
]
