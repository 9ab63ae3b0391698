import logging

from conftest import make_settings

from campaign_dispatcher import main
from campaign_dispatcher.core.config import Settings, parse_category_slugs
from campaign_dispatcher.core.telemetry import (
    TraceContextFilter,
    configure_logging,
    parse_otlp_headers,
    setup_telemetry,
    shutdown_telemetry,
)


def test_defaults_keep_sending_off() -> None:
    settings = Settings(_env_file=None)
    assert settings.mailchimp_enable_send is False
    assert settings.mailchimp_force_resend is False
    assert settings.eligible_category_slugs == frozenset({"corporate-news"})


def test_settings_read_environment(monkeypatch) -> None:
    monkeypatch.setenv("MAILCHIMP_API_KEY", "abc-us5")
    monkeypatch.setenv("MAILCHIMP_SERVER_PREFIX", "us5")
    monkeypatch.setenv("MAILCHIMP_AUDIENCE_ID", "list-9")
    monkeypatch.setenv("MAILCHIMP_ENABLE_SEND", "true")
    monkeypatch.setenv("MAILCHIMP_ELIGIBLE_CATEGORY_SLUGS", "Corporate-News, markets")

    settings = Settings(_env_file=None)

    assert settings.mailchimp_enable_send is True
    assert settings.missing_mailchimp_settings() == []
    assert settings.eligible_category_slugs == frozenset({"corporate-news", "markets"})


def test_missing_mailchimp_settings_are_named() -> None:
    settings = make_settings(mailchimp_api_key=None, mailchimp_audience_id="")
    assert settings.missing_mailchimp_settings() == ["MAILCHIMP_API_KEY", "MAILCHIMP_AUDIENCE_ID"]


def test_mock_mode_needs_no_credentials() -> None:
    settings = make_settings(mailchimp_api_key=None, mailchimp_mock_mode=True)
    assert settings.missing_mailchimp_settings() == []


def test_site_and_media_urls() -> None:
    settings = make_settings(public_site_url="https://site.example.com/")
    assert settings.site_url == "https://site.example.com"
    assert settings.media_base_url == "https://site.example.com"
    assert make_settings(strapi_media_url="https://cdn.example.com/").media_base_url == "https://cdn.example.com"


def test_parse_category_slugs() -> None:
    assert parse_category_slugs(None) == frozenset()
    assert parse_category_slugs(" , ") == frozenset()
    assert parse_category_slugs("A,b , a") == frozenset({"a", "b"})


def test_parse_otlp_headers() -> None:
    assert parse_otlp_headers(None) == {}
    assert parse_otlp_headers("authorization=Bearer x, x-team = ops,broken") == {
        "authorization": "Bearer x",
        "x-team": "ops",
    }


def test_disabled_telemetry_is_a_no_op() -> None:
    runtime = setup_telemetry(make_settings(otel_enabled=False))
    assert runtime.enabled is False
    assert runtime.provider is None
    shutdown_telemetry(runtime)


def test_trace_context_filter_stamps_zero_ids_outside_spans() -> None:
    record = logging.LogRecord("dispatch", logging.INFO, __file__, 1, "hello", None, None)

    assert TraceContextFilter().filter(record) is True
    assert record.trace_id == "0" * 32
    assert record.span_id == "0" * 16


def test_configure_logging_attaches_filter_once() -> None:
    root = logging.getLogger()
    handler = logging.StreamHandler()
    root.addHandler(handler)
    try:
        configure_logging()
        configure_logging()
        assert sum(isinstance(item, TraceContextFilter) for item in handler.filters) == 1
    finally:
        root.removeHandler(handler)


def test_run_starts_uvicorn_with_configured_address(monkeypatch) -> None:
    captured: dict = {}

    def fake_run(app_path: str, **kwargs) -> None:
        captured["app"] = app_path
        captured.update(kwargs)

    monkeypatch.setattr(main.uvicorn, "run", fake_run)
    monkeypatch.setattr(main, "settings", make_settings(host="127.0.0.1", port=9100))
    main.run()

    assert captured == {"app": "campaign_dispatcher.main:app", "host": "127.0.0.1", "port": 9100}
