# core/config.py

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List

import yaml
from dotenv import load_dotenv

load_dotenv()

DEFAULT_CONFIG_PATH = "configs/assistant.yaml"


@dataclass
class KindStyle:
    title: str
    icon: str


@dataclass
class OracleSettings:
    model: str = "gpt-4o"
    temperature: float = 0.2
    max_output_tokens: int = 2000
    timeout_seconds: float = 60.0
    api_key: str | None = None


@dataclass
class AnalysisSettings:
    min_input_length: int = 10
    max_input_length: int = 50000
    max_concurrency: int = 5
    default_types: List[str] = field(
        default_factory=lambda: ["spelling", "grammar", "clarity", "conciseness", "passive-voice"]
    )


@dataclass
class CacheSettings:
    ttl_seconds: float = 1800.0
    grammar_ttl_seconds: float = 900.0
    max_entries: int = 1000


@dataclass
class RateLimitSettings:
    max_requests: int = 60
    grammar_max_requests: int = 120
    window_seconds: float = 3600.0


@dataclass
class AssistantConfig:
    oracle: OracleSettings = field(default_factory=OracleSettings)
    analysis: AnalysisSettings = field(default_factory=AnalysisSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    kinds: Dict[str, KindStyle] = field(default_factory=dict)


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    return cfg.get(name) or {}


def load_config(path: str = DEFAULT_CONFIG_PATH) -> AssistantConfig:
    with open(path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}

    oracle_cfg = _section(cfg, "oracle")
    oracle = OracleSettings(
        model=oracle_cfg.get("model", "gpt-4o"),
        temperature=float(oracle_cfg.get("temperature", 0.2)),
        max_output_tokens=int(oracle_cfg.get("max_output_tokens", 2000)),
        timeout_seconds=float(oracle_cfg.get("timeout_seconds", 60.0)),
        api_key=os.getenv("OPENAI_API_KEY"),
    )

    analysis_cfg = _section(cfg, "analysis")
    analysis = AnalysisSettings(
        min_input_length=int(analysis_cfg.get("min_input_length", 10)),
        max_input_length=int(analysis_cfg.get("max_input_length", 50000)),
        max_concurrency=int(analysis_cfg.get("max_concurrency", 5)),
    )
    if analysis_cfg.get("default_types"):
        analysis.default_types = list(analysis_cfg["default_types"])

    cache_cfg = _section(cfg, "cache")
    cache = CacheSettings(
        ttl_seconds=float(cache_cfg.get("ttl_seconds", 1800)),
        grammar_ttl_seconds=float(cache_cfg.get("grammar_ttl_seconds", 900)),
        max_entries=int(cache_cfg.get("max_entries", 1000)),
    )

    limit_cfg = _section(cfg, "rate_limit")
    rate_limit = RateLimitSettings(
        max_requests=int(limit_cfg.get("max_requests", 60)),
        grammar_max_requests=int(limit_cfg.get("grammar_max_requests", 120)),
        window_seconds=float(limit_cfg.get("window_seconds", 3600)),
    )

    kinds: Dict[str, KindStyle] = {}
    for kind, props in _section(cfg, "kinds").items():
        props = props or {}
        kinds[kind] = KindStyle(
            title=props.get("title", kind),
            icon=props.get("icon", "✨"),
        )

    return AssistantConfig(
        oracle=oracle,
        analysis=analysis,
        cache=cache,
        rate_limit=rate_limit,
        kinds=kinds,
    )
