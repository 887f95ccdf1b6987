import pytest
import yaml
from pydantic import ValidationError

from aggregation import FailurePolicy
from core.entities import FeedKind
from services.config import get_enabled_feeds, get_enabled_sources, load_config, parse_config

CONFIG_YAML = """
DATABASE_PATH: /tmp/from-yaml.db
MAX_ITEMS_PER_FEED: 10
CACHE_FAILURE_POLICY: keep_last_good
feeds:
  - name: Lab Blog
    url: https://lab.example/feed.xml
    kind: blog
    category: AI Research
    fetch_interval: 45
  - name: Paused
    url: https://paused.example/rss
    enabled: "false"
sources:
  - id: models
    type: http_json
    category: models
    url: /api/models
    items_key: models
    refresh_minutes: 20
  - id: off
    type: http_json
    category: news
    url: /api/news
    enabled: false
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("DATABASE_PATH", "LOG_LEVEL", "API_BASE_URL", "FEEDPULSE_CONFIG"):
        monkeypatch.delenv(key, raising=False)


def test_parse_config_defaults():
    config = parse_config({})
    assert config.DATABASE_PATH == "data/feedpulse.db"
    assert config.MAX_ITEMS_PER_FEED == 50
    assert config.CACHE_FAILURE_POLICY is FailurePolicy.RESET
    assert config.feeds == []
    assert config.sources == []


def test_load_config_from_file(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(CONFIG_YAML)
    config = load_config(str(path))

    assert config.DATABASE_PATH == "/tmp/from-yaml.db"
    assert config.MAX_ITEMS_PER_FEED == 10
    assert config.CACHE_FAILURE_POLICY is FailurePolicy.KEEP_LAST_GOOD

    [feed] = get_enabled_feeds(config)
    assert feed.kind is FeedKind.BLOG
    descriptor = feed.to_descriptor()
    assert descriptor.fetch_interval == 45
    assert descriptor.is_active
    assert descriptor.health_score == 100

    [source] = get_enabled_sources(config)
    assert source.id == "models"
    assert source.refresh_minutes == 20
    assert [s.id for s in config.sources] == ["models", "off"]


def test_environment_overrides_yaml(tmp_path, monkeypatch):
    path = tmp_path / "config.yml"
    path.write_text(CONFIG_YAML)
    monkeypatch.setenv("DATABASE_PATH", "/tmp/from-env.db")
    monkeypatch.setenv("API_BASE_URL", "https://api.example")

    config = load_config(str(path))
    assert config.DATABASE_PATH == "/tmp/from-env.db"
    assert config.API_BASE_URL == "https://api.example"


def test_config_path_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "elsewhere.yml"
    path.write_text("RETENTION_DAYS: 7\n")
    monkeypatch.setenv("FEEDPULSE_CONFIG", str(path))
    assert load_config().RETENTION_DAYS == 7


def test_missing_explicit_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yml"))


def test_invalid_values_are_rejected():
    with pytest.raises(ValidationError):
        parse_config({"CACHE_FAILURE_POLICY": "retry_forever"})
    with pytest.raises(ValidationError):
        parse_config({"feeds": [{"name": "x", "url": "https://x", "fetch_interval": 0}]})


def test_yaml_typed_scalars_become_text():
    data = yaml.safe_load(
        "feeds:\n"
        "  - name: 2024\n"
        "    url: https://x.example/rss\n"
        "sources:\n"
        "  - id: off\n"
        "    type: http_json\n"
        "    category: 42\n"
        "    url: /api/x\n"
    )
    config = parse_config(data)
    assert config.feeds[0].name == "2024"
    assert config.sources[0].id == "off"
    assert config.sources[0].category == "42"
