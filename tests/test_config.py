from tracking_assistant.config import GatewaySettings, RunSettings


def test_defaults_without_environment():
    settings = GatewaySettings.from_env({})

    assert settings.openai_api_key is None
    assert settings.database_url is None
    assert settings.ups.base_url == "https://wwwcie.ups.com"
    assert settings.ups.cache_token is False
    assert settings.usps.base_url == "https://secure.shippingapis.com/ShippingAPI.dll"
    assert settings.run == RunSettings()
    assert settings.cors_origins == ()
    assert settings.chat_max_message_length == 5000


def test_values_are_read_from_mapping():
    settings = GatewaySettings.from_env(
        {
            "OPENAI_API_KEY": "sk-1",
            "OPENAI_ASSISTANT_ID": "asst_a",
            "OPENAI_ANALYTICS_ASSISTANT_ID": "asst_b",
            "DATABASE_URL": "postgresql://localhost/db",
            "DB_POOL_MAX_SIZE": "4",
            "UPS_CLIENT_ID": "id",
            "UPS_CLIENT_SECRET": "secret",
            "UPS_BASE_URL": "https://onlinetools.ups.com/",
            "UPS_TOKEN_CACHE": "yes",
            "USPS_USER_ID": "USER",
            "RUN_POLL_INTERVAL": "0.25",
            "RUN_MAX_POLLS": "10",
            "RUN_TIMEOUT_SECONDS": "30",
            "CORS_ORIGINS": "https://a.example, https://b.example,",
            "CHAT_MAX_MESSAGE_LENGTH": "100",
        }
    )

    assert settings.assistant_id == "asst_a"
    assert settings.analytics_assistant_id == "asst_b"
    assert settings.db_pool_max_size == 4
    assert settings.ups.base_url == "https://onlinetools.ups.com"
    assert settings.ups.cache_token is True
    assert settings.usps.user_id == "USER"
    assert settings.run == RunSettings(poll_interval=0.25, max_polls=10, timeout_seconds=30)
    assert settings.cors_origins == ("https://a.example", "https://b.example")
    assert settings.chat_max_message_length == 100


def test_configured_secrets_never_expose_values():
    settings = GatewaySettings.from_env({"OPENAI_API_KEY": "sk-1", "UPS_CLIENT_SECRET": "s"})

    secrets = settings.configured_secrets()

    assert secrets["OPENAI_API_KEY"] is True
    assert secrets["UPS_CLIENT_SECRET"] is True
    assert secrets["DATABASE_URL"] is False
    assert "sk-1" not in repr(secrets)
