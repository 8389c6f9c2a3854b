# Services module
from app.services.customer_success import (
    HealthScoreCalculator,
    PortfolioScorer,
    generate_alerts,
)
