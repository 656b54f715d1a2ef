"""Business event catalog used by Trigger and Event nodes (read-only reference data)."""

from __future__ import annotations

from .errors import UnknownEventTypeError

# category -> [(event_type, display label)]
EVENT_CATEGORIES: dict[str, tuple[tuple[str, str], ...]] = {
    "OZ Checking": (
        ("oz_check_performed", "OZ Check Performed"),
        ("oz_check_completed", "OZ Check Completed"),
    ),
    "Listings & Properties": (
        ("viewed_listings", "Viewed Listings"),
        ("listing_clicked", "Listing Clicked"),
        ("listing_inquiry_started", "Listing Inquiry Started"),
        ("listing_inquiry_submitted", "Listing Inquiry Submitted"),
    ),
    "User Engagement & Conversion": (
        ("community_interest_expressed", "Community Interest Expressed"),
        ("schedule_call_page_view", "Schedule Call Page View"),
        ("dashboard_accessed", "Dashboard Accessed"),
        ("investor_qualification_submitted", "Investor Qualification Submitted"),
    ),
    "Investment Page": (
        ("viewed_invest_page", "Viewed Invest Page"),
        ("invest_page_button_clicked", "Invest Page Button Clicked"),
        ("invest_reason_clicked", "Invest Reason Clicked"),
    ),
    "Financial Tools": (
        ("tax_calculator_used", "Tax Calculator Used"),
        ("tax_calculator_button_clicked", "Tax Calculator Button Clicked"),
        ("oz_check_button_clicked", "OZ Check Button Clicked"),
    ),
    "Dev / Partner": (
        ("page_view", "User Signed In"),
        ("request_vault_access", "Request Vault Access"),
    ),
    "Book & Lead Magnet": (
        ("book_purchase_click", "Book Purchase Click"),
        ("book_secondary_cta_click", "Book Secondary CTA Click"),
        ("book_lead_magnet_click", "Book Lead Magnet Click"),
    ),
    "Webinar": (
        ("webinar_navigation", "Webinar Navigation"),
        ("webinar_scroll_to_final_cta", "Webinar Scroll to Final CTA"),
        ("webinar_registration_click", "Webinar Registration Click"),
        ("webinar_signup", "Webinar Signup"),
    ),
}

_LABELS: dict[str, str] = {
    value: label for entries in EVENT_CATEGORIES.values() for value, label in entries
}


def is_known_event(event_type: str) -> bool:
    return event_type in _LABELS


def event_label(event_type: str) -> str:
    """Display name for an event type. Raises UnknownEventTypeError outside the catalog."""
    try:
        return _LABELS[event_type]
    except KeyError:
        raise UnknownEventTypeError(f"Unknown event type: {event_type!r}") from None


def catalog_as_dict() -> dict[str, list[dict[str, str]]]:
    return {
        category: [{"value": value, "label": label} for value, label in entries]
        for category, entries in EVENT_CATEGORIES.items()
    }
