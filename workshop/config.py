from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

DEFAULT_CONFIG_FILE = "workshop.yaml"


@dataclass
class SamplingConfig:
    temperature: float = 0.1
    top_k: int = 1
    top_p: float = 1.0


@dataclass
class WorkshopConfig:
    provider: str = "gemini"               # "gemini" | "local"
    fallback_providers: List[str] = field(default_factory=list)
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    local_url: str = "http://localhost:11434/api/chat"
    local_model: str = "qwen2.5-coder:7b"
    local_timeout_seconds: int = 600
    state_dir: Path = Path(".workshop")
    log_level: str = "INFO"
    file_sampling: SamplingConfig = field(default_factory=SamplingConfig)

    @property
    def provider_chain(self) -> List[str]:
        chain = [self.provider]
        chain.extend(p for p in self.fallback_providers if p not in chain)
        return chain


def _read_yaml(path: Path) -> Dict[str, Any]:
    if path.exists():
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return {}


def load_config(path: Optional[Path] = None) -> WorkshopConfig:
    """
    Defaults < workshop.yaml < environment.

    workshop.yaml (all keys optional):

        llm:
          provider: gemini
          fallback: [local]
          gemini: {model: gemini-2.5-flash}
          local: {url: http://localhost:11434/api/chat, model: qwen2.5-coder:7b}
        sampling: {temperature: 0.1, top_k: 1, top_p: 1}
        state_dir: .workshop
        log_level: INFO
    """
    cfg_path = path or Path(os.getenv("WORKSHOP_CONFIG", DEFAULT_CONFIG_FILE))
    raw = _read_yaml(cfg_path)

    llm_cfg = raw.get("llm") or {}
    gemini_cfg = llm_cfg.get("gemini") or {}
    local_cfg = llm_cfg.get("local") or {}
    sampling_cfg = raw.get("sampling") or {}

    cfg = WorkshopConfig(
        provider=llm_cfg.get("provider", "gemini"),
        fallback_providers=list(llm_cfg.get("fallback") or []),
        gemini_model=gemini_cfg.get("model", "gemini-2.5-flash"),
        local_url=local_cfg.get("url", "http://localhost:11434/api/chat"),
        local_model=local_cfg.get("model", "qwen2.5-coder:7b"),
        local_timeout_seconds=int(local_cfg.get("timeout_seconds", 600)),
        state_dir=Path(raw.get("state_dir", ".workshop")),
        log_level=str(raw.get("log_level", "INFO")),
        file_sampling=SamplingConfig(
            temperature=float(sampling_cfg.get("temperature", 0.1)),
            top_k=int(sampling_cfg.get("top_k", 1)),
            top_p=float(sampling_cfg.get("top_p", 1.0)),
        ),
    )

    # Environment wins
    cfg.gemini_api_key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or gemini_cfg.get("api_key")
    cfg.provider = os.getenv("WORKSHOP_PROVIDER", cfg.provider)
    cfg.gemini_model = os.getenv("GEMINI_MODEL", cfg.gemini_model)
    cfg.local_url = os.getenv("LOCAL_LLM_URL", cfg.local_url)
    cfg.local_model = os.getenv("LOCAL_LLM_MODEL", cfg.local_model)
    if os.getenv("WORKSHOP_STATE_DIR"):
        cfg.state_dir = Path(os.environ["WORKSHOP_STATE_DIR"])
    cfg.log_level = os.getenv("WORKSHOP_LOG_LEVEL", cfg.log_level)
    return cfg
