"""
Customer Success Playbooks Data

Response playbooks recommended from the alert inbox. Each playbook lists
the alert types it answers and an ordered task checklist.
"""

from typing import Optional

from app.schemas.customer_success.alert import AlertType
from app.schemas.customer_success.playbook import PlaybookDefinition


def get_alert_playbooks() -> list[dict]:
    """
    Returns the alert response playbook definitions.

    Returns:
        List of playbook dictionaries with tasks.
    """
    return [
        # ============================================================
        # CHURN RISK RESPONSE
        # ============================================================
        {
            "id": "churn-risk-response",
            "name": "Churn Risk Response",
            "description": "Structured approach to address churn signals and re-engage the customer",
            "alert_types": ["churn_risk", "usage_decline", "low_engagement"],
            "estimated_days": 14,
            "tasks": [
                {
                    "title": "Review account health data",
                    "description": "Analyze usage trends, feature adoption, and engagement metrics",
                },
                {
                    "title": "Schedule check-in call",
                    "description": "Reach out to primary contact for a discovery conversation",
                },
                {"title": "Identify root cause", "description": "Document specific reasons for disengagement"},
                {"title": "Create action plan", "description": "Develop tailored plan to address identified issues"},
                {"title": "Executive outreach", "description": "If needed, involve executive sponsor"},
                {
                    "title": "Follow-up within 7 days",
                    "description": "Check on progress and adjust plan as needed",
                },
            ],
        },
        # ============================================================
        # EXPANSION OPPORTUNITY
        # ============================================================
        {
            "id": "expansion-opportunity",
            "name": "Expansion Opportunity",
            "description": "Capture expansion revenue by addressing capacity or feature needs",
            "alert_types": ["expansion_opportunity"],
            "estimated_days": 30,
            "tasks": [
                {
                    "title": "Validate expansion signal",
                    "description": "Confirm the usage pattern indicates genuine need",
                },
                {"title": "Identify decision makers", "description": "Map stakeholders involved in purchase decisions"},
                {"title": "Prepare business case", "description": "Document ROI and value delivered so far"},
                {"title": "Schedule expansion conversation", "description": "Present upsell/cross-sell opportunity"},
                {"title": "Create proposal", "description": "Generate custom quote or proposal"},
                {"title": "Follow up on decision", "description": "Track progress to close"},
            ],
        },
        # ============================================================
        # ONBOARDING RESCUE
        # ============================================================
        {
            "id": "onboarding-rescue",
            "name": "Onboarding Rescue",
            "description": "Get stalled onboarding back on track",
            "alert_types": ["onboarding_stalled"],
            "estimated_days": 7,
            "tasks": [
                {"title": "Identify blockers", "description": "Determine what is preventing progress"},
                {"title": "Schedule rescue session", "description": "Intensive support call to work through issues"},
                {
                    "title": "Provide additional resources",
                    "description": "Share relevant documentation or training",
                },
                {"title": "Set clear milestones", "description": "Define next 7-day goals"},
                {"title": "Daily check-ins", "description": "Brief daily touchpoints until back on track"},
            ],
        },
        # ============================================================
        # CHAMPION TRANSITION
        # ============================================================
        {
            "id": "champion-transition",
            "name": "Champion Transition",
            "description": "Maintain relationship when key contact leaves",
            "alert_types": ["champion_left"],
            "estimated_days": 21,
            "tasks": [
                {"title": "Confirm departure", "description": "Verify the champion change and timing"},
                {"title": "Identify new champion", "description": "Find who is taking over responsibilities"},
                {"title": "Request introduction", "description": "Get warm introduction from departing champion"},
                {"title": "Schedule onboarding", "description": "Brief new contact on account status and goals"},
                {"title": "Update stakeholder map", "description": "Document new relationship structure"},
                {"title": "Re-establish success plan", "description": "Align on goals with new champion"},
            ],
        },
        # ============================================================
        # RENEWAL PREPARATION
        # ============================================================
        {
            "id": "renewal-preparation",
            "name": "Renewal Preparation",
            "description": "Proactive renewal planning and execution",
            "alert_types": ["renewal_approaching"],
            "estimated_days": 60,
            "tasks": [
                {
                    "title": "Review account performance",
                    "description": "Prepare renewal deck with value delivered",
                },
                {"title": "Identify expansion opportunities", "description": "Look for upsell potential"},
                {"title": "Gauge sentiment", "description": "Informal check-in on satisfaction"},
                {"title": "Schedule QBR", "description": "Formal review with stakeholders"},
                {"title": "Send renewal proposal", "description": "Initiate commercial discussion"},
                {"title": "Negotiate and close", "description": "Work through any objections"},
            ],
        },
    ]


PLAYBOOKS: list[PlaybookDefinition] = [PlaybookDefinition.model_validate(p) for p in get_alert_playbooks()]


def get_recommended_playbook(alert_type: AlertType) -> Optional[PlaybookDefinition]:
    """First playbook that answers the alert type, if any."""
    alert_type = AlertType(alert_type)
    for playbook in PLAYBOOKS:
        if alert_type in playbook.alert_types:
            return playbook
    return None
