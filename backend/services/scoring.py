"""
BizFlow Pro - Opportunity scoring (heuristic, no model behind it)

generate_lead_score() reads an opportunity enriched with its stage and
contact:
    {"value": 12000, "stage": {"name": "Won"}, "contact": {"email": ..., "phone": ...}}
"""

from typing import Dict

BASE_SCORE = 50
MAX_SCORE = 100


def generate_lead_score(opportunity: Dict) -> Dict:
    score = BASE_SCORE
    reasons = []

    value = float(opportunity.get("value") or 0)
    if value > 10000:
        score += 20
        reasons.append("High deal value")
    elif value > 5000:
        score += 10
        reasons.append("Moderate deal value")

    stage_name = ((opportunity.get("stage") or {}).get("name") or "").lower()
    if "won" in stage_name:
        score = MAX_SCORE
        reasons.append("Deal won")
    elif "negotiation" in stage_name:
        score += 15
        reasons.append("Advanced stage (Negotiation)")

    contact = opportunity.get("contact") or {}
    if contact.get("email") and contact.get("phone"):
        score += 10
        reasons.append("Complete contact info")

    return {
        "score": min(score, MAX_SCORE),
        "reasoning": ", ".join(reasons) or "Standard opportunity",
    }


def generate_summary(opportunity: Dict) -> str:
    """Markdown summary shown on the opportunity card"""
    value = float(opportunity.get("value") or 0)
    client = (opportunity.get("contact") or {}).get("name") or "Unknown"
    driver = "high value" if value > 5000 else "consistent engagement"
    return (
        "**Opportunity Summary**\n"
        f"- **Deal:** {opportunity.get('title', '')}\n"
        f"- **Value:** ${value:,.2f}\n"
        f"- **Client:** {client}\n"
        "\n"
        "**Key Insights:**\n"
        f"This opportunity shows strong potential due to {driver}.\n"
        "Recommended next step: Follow up within 24 hours to address any pending questions."
    )
