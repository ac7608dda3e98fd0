import pytest

from conftest import CUSTOMER_EMAIL, PHOTO_URLS, PNG_B64, SHOP_EMAIL, BrokenStorage
from stitchquote.domain.errors import (
    GenerationFailed,
    InvalidInput,
    QuoteFetchFailed,
    QuoteNotFound,
    UpstreamUnavailable,
)
from stitchquote.domain.reconciliation import EmailState, RenderState, reconcile_quote
from stitchquote.services.render_orchestrator import generate_or_fetch_render


def render(services, quote_id, category="auto", photo_urls=PHOTO_URLS):
    return generate_or_fetch_render(
        services, quote_id=quote_id, category=category, photo_urls=photo_urls
    )


def test_first_call_generates_and_persists(services, stored_quote, image_generator):
    result = render(services, stored_quote)

    assert result.cached is False
    assert result.preview_image_data_url == "data:image/png;base64," + PNG_B64
    assert result.preview_image_url.startswith("http://testserver/files/renders/")
    assert len(image_generator.calls) == 1

    raw = services.quotes.fetch_raw(stored_quote)
    assert raw["preview_image_data_url"] == result.preview_image_data_url
    assert raw["preview_image_url"] == result.preview_image_url


def test_second_call_is_cached_without_generation(services, stored_quote, image_generator, sender):
    first = render(services, stored_quote)
    emails_after_first = len(sender.sent)

    second = render(services, stored_quote, photo_urls=["https://cdn.example.com/other.jpg"])

    assert second.cached is True
    assert second.preview_image_data_url == first.preview_image_data_url
    assert second.preview_image_url == first.preview_image_url
    assert second.email_outcomes == {}
    assert len(image_generator.calls) == 1
    assert len(sender.sent) == emails_after_first


def test_prompt_uses_clean_category_and_material(services, stored_quote, image_generator):
    render(services, stored_quote, category="spaceship")
    prompt = image_generator.calls[0]["prompt"]
    assert "Category: auto" in prompt
    assert "Material: vinyl" in prompt
    assert image_generator.calls[0]["reference_urls"] == PHOTO_URLS


def test_notifications_go_to_shop_and_customer(services, stored_quote, sender):
    result = render(services, stored_quote)

    assert result.email_outcomes["shop"].sent is True
    assert result.email_outcomes["customer"].sent is True

    shop_mail = sender.to(SHOP_EMAIL)[0]
    assert result.preview_image_url in shop_mail["html_body"]
    assert f"/admin/quotes/{stored_quote}" in shop_mail["html_body"]

    customer_mail = sender.to(CUSTOMER_EMAIL)[0]
    assert "/admin/" not in customer_mail["html_body"]
    assert "cid:render-preview.png" in customer_mail["html_body"]
    attachment = customer_mail["attachments"][0]
    assert attachment["Content"] == PNG_B64
    assert attachment["ContentID"] == "cid:render-preview.png"

    view = reconcile_quote(services.quotes.fetch_raw(stored_quote))
    assert view.emails["render"].state is EmailState.SENT
    assert view.render_state is RenderState.RENDERED


def test_one_failed_email_does_not_block_the_other(services, stored_quote, sender):
    sender.fail_for.add(SHOP_EMAIL)

    result = render(services, stored_quote)

    assert result.cached is False
    assert result.email_outcomes["shop"].sent is False
    assert "Inactive recipient" in result.email_outcomes["shop"].error
    assert result.email_outcomes["customer"].sent is True

    raw = services.quotes.fetch_raw(stored_quote)
    assert raw["preview_image_data_url"]
    assert raw["render_email_sent"] is False
    assert "Inactive recipient" in raw["render_email_error"]


def test_storage_failure_keeps_inline_artifact(services, stored_quote):
    services.storage = BrokenStorage()

    result = render(services, stored_quote)

    assert result.cached is False
    assert result.preview_image_url is None
    assert result.preview_image_data_url.startswith("data:image/png;base64,")
    raw = services.quotes.fetch_raw(stored_quote)
    assert raw["preview_image_url"] is None
    assert raw["preview_image_data_url"] == result.preview_image_data_url


def test_no_image_is_generation_failed_and_retryable(services, stored_quote, image_generator):
    image_generator.result = None

    with pytest.raises(GenerationFailed) as exc:
        render(services, stored_quote)
    assert exc.value.to_dict()["retryable"] is True

    view = reconcile_quote(services.quotes.fetch_raw(stored_quote))
    assert view.render_state is RenderState.FAILED
    assert "No image" in view.render_error

    image_generator.result = PNG_B64
    retry = render(services, stored_quote)
    assert retry.cached is False
    view = reconcile_quote(services.quotes.fetch_raw(stored_quote))
    assert view.render_state is RenderState.RENDERED
    assert view.render_error is None


def test_upstream_error_becomes_generation_failed(services, stored_quote, image_generator):
    image_generator.error = UpstreamUnavailable("Image generation failed.", detail="503 from upstream")

    with pytest.raises(GenerationFailed):
        render(services, stored_quote)
    assert services.quotes.fetch_raw(stored_quote)["render_error"] == "503 from upstream"


def test_invalid_input(services, stored_quote):
    with pytest.raises(InvalidInput):
        render(services, "  ")
    with pytest.raises(InvalidInput):
        render(services, stored_quote, photo_urls=["", "  "])


def test_unknown_quote_is_not_found(services, image_generator):
    with pytest.raises(QuoteNotFound):
        render(services, "nope")
    assert image_generator.calls == []


def test_legacy_inline_preview_counts_as_cached(services, repo, image_generator):
    quote_id = repo.insert({"name": "Old", "extra": {"previewImageDataUrl": "data:image/png;base64,OLD"}})
    result = render(services, quote_id)
    assert result.cached is True
    assert result.preview_image_data_url == "data:image/png;base64,OLD"
    assert image_generator.calls == []


def test_concurrent_writer_wins(services, stored_quote, image_generator, sender):
    # another worker stores its render while ours is being generated
    image_generator.hook = lambda: services.quotes.set_preview_if_absent(
        stored_quote, "data:image/png;base64,WINNER"
    )

    result = render(services, stored_quote)

    assert result.cached is True
    assert result.preview_image_data_url == "data:image/png;base64,WINNER"
    assert sender.sent == []


def test_lookup_failure_still_renders(services, stored_quote, monkeypatch, sender):
    def broken_fetch(quote_id):
        raise QuoteFetchFailed("Failed to load quote.", detail="connection reset")

    monkeypatch.setattr(services.quotes, "fetch_raw", broken_fetch)

    result = render(services, stored_quote)

    assert result.cached is False
    assert result.email_outcomes["customer"].error == "no_recipient"
    assert result.email_outcomes["shop"].sent is True


@pytest.mark.parametrize("material", [["vinyl"], 42, "velvet", None])
def test_odd_material_guess_still_renders(services, repo, image_generator, material):
    quote_id = repo.insert(
        {"name": "Old", "category": "marine", "assessment": {"material_guess": material}}
    )
    result = render(services, quote_id, category="marine")
    assert result.cached is False
    prompt = image_generator.calls[0]["prompt"]
    assert "Category: marine" in prompt
    assert "Material: match the existing material" in prompt
