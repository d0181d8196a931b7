"""Global configuration — loaded from environment variables."""

from pydantic_settings import BaseSettings


class EcoSettings(BaseSettings):
    # Population budgets
    pool_size: int = 10_000
    max_agents: int = 1_000
    max_patterns: int = 1_000
    initial_agents: int = 50
    initial_patterns: int = 100
    spawn_radius: float = 20.0

    # Randomness (None = fresh entropy on every start)
    seed: int | None = None

    # Parallel pool updates
    workers: int = 0  # 0 = one worker per CPU
    chunk_size: int = 1024

    # Circuit breaker
    failure_threshold: int = 10
    reset_timeout_seconds: float = 30.0
    rhythm_frequency_hz: float = 0.038

    # Real-time loop
    tick_interval_seconds: float = 1 / 60

    # Concept discovery
    concept_source: str = "simulated"  # "simulated" | "web"
    concept_search_url: str = "https://html.duckduckgo.com/html/"
    http_timeout: float = 10.0

    log_level: str = "INFO"

    model_config = {"env_prefix": "ECOKERNEL_"}


settings = EcoSettings()
