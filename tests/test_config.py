from packbot.config import Settings


def test_defaults():
    settings = Settings(backend_api_key="k", _env_file=None)
    assert settings.run_max_iterations == 10
    assert settings.scope_timeout == 8.0
    assert settings.min_turns_between_questions == 10
    assert settings.scope_deny_categories == ["math_homework", "politics", "dating"]


def test_comma_separated_categories():
    settings = Settings(backend_api_key="k", scope_deny_categories="politics, dating,", _env_file=None)
    assert settings.scope_deny_categories == ["politics", "dating"]
