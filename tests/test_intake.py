import pytest

from conftest import CUSTOMER_EMAIL, PHOTO_URLS, SHOP_EMAIL
from stitchquote.domain.errors import QuoteValidationError, UpstreamUnavailable
from stitchquote.domain.reconciliation import EmailState, reconcile_quote
from stitchquote.schemas.quote import QuoteRequest
from stitchquote.services.intake_service import submit_quote


def make_request(**overrides) -> QuoteRequest:
    data = {
        "name": "Ann Customer",
        "email": CUSTOMER_EMAIL,
        "phone": "555-0100",
        "category": "auto",
        "notes": "Dog chewed the bolster",
        "photoUrls": list(PHOTO_URLS),
    }
    data.update(overrides)
    return QuoteRequest.model_validate(data)


def test_submit_stores_quote_and_notifies(services, assessor, sender):
    result = submit_quote(services, make_request())

    assert (result.estimate.totalLow, result.estimate.totalHigh) == (250, 368)
    assert result.assessment.item == "driver seat bottom"
    assert assessor.calls[0]["photo_urls"] == PHOTO_URLS
    assert assessor.calls[0]["category"] == "auto"

    raw = services.quotes.fetch_raw(result.quote_id)
    assert raw["name"] == "Ann Customer"
    assert raw["photo_urls"] == PHOTO_URLS
    assert raw["estimate"]["totalHigh"] == 368
    assert (raw["total_low"], raw["total_high"]) == (250, 368)
    assert raw["assessment"]["notes"] == "No additional notes."

    view = reconcile_quote(raw)
    assert view.emails["lead"].state is EmailState.SENT
    assert view.emails["receipt"].state is EmailState.SENT
    assert view.emails["render"].state is EmailState.UNKNOWN

    data = result.to_dict()
    assert data["quoteId"] == result.quote_id
    assert data["emailOutcomes"]["lead"]["sent"] is True
    assert data["emailOutcomes"]["receipt"]["id"]


def test_lead_email_subject_and_reply_to(services, sender):
    submit_quote(services, make_request())

    lead = sender.to(SHOP_EMAIL)[0]
    assert lead["subject"] == "New Photo Quote: AUTO • driver seat bottom • $250–$368"
    assert lead["reply_to"] == CUSTOMER_EMAIL
    assert "Dog chewed the bolster" in lead["html_body"]

    receipt = sender.to(CUSTOMER_EMAIL)[0]
    assert "$250 – $368" in receipt["html_body"]


def test_out_of_domain_enums_are_coerced(services, assessor):
    assessor.reply = {"category": "hovercraft", "material_guess": "plastic", "recommended_repair": "glue",
                      "complexity": "???", "item": "", "damage": None}

    result = submit_quote(services, make_request(category="marine"))

    a = result.assessment.to_dict()
    assert a["category"] == "marine"
    assert a["material_guess"] == "unknown"
    assert a["recommended_repair"] == "unknown"
    assert a["complexity"] == "medium"
    assert a["item"] and a["damage"]
    assert result.estimate.laborHours == 3.75


def test_assessment_failure_stores_nothing(services, assessor, sender):
    assessor.error = UpstreamUnavailable("AI assessment failed.")

    with pytest.raises(UpstreamUnavailable):
        submit_quote(services, make_request())

    assert services.quotes.list_recent(10) == []
    assert sender.sent == []


@pytest.mark.parametrize(
    "urls",
    [
        [],
        ["  "],
        ["https://x/1.jpg", "https://x/2.jpg", "https://x/3.jpg", "https://x/4.jpg"],
        ["file:///etc/passwd"],
    ],
)
def test_photo_validation(services, assessor, urls):
    with pytest.raises(QuoteValidationError):
        submit_quote(services, make_request(photoUrls=urls))
    assert assessor.calls == []


def test_email_failures_do_not_fail_submission(services, sender):
    sender.fail_for.update({SHOP_EMAIL, CUSTOMER_EMAIL})

    result = submit_quote(services, make_request())

    assert result.email_outcomes["lead"].sent is False
    assert result.email_outcomes["receipt"].sent is False
    raw = services.quotes.fetch_raw(result.quote_id)
    assert raw["lead_email_sent"] is False
    assert raw["receipt_email_sent"] is False
    assert "Inactive recipient" in raw["lead_email_error"]


def test_missing_category_defaults_to_auto():
    assert make_request(category=None).category.value == "auto"
    assert make_request(category="").category.value == "auto"
