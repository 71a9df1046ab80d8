"""Dependency providers — lazily created agent singletons."""

from pathlib import Path

from .config import AgentConfig, NetmeterSettings, get_settings, load_or_create_agent_config
from .core.boot_session import make_boot_time_source
from .core.counter_source import PsutilCounterSource
from .core.ledger import TrafficLedger
from .core.reset_policy import ResetPolicy
from .modules.accounting_loop import AccountingLoop
from .services.query_service import QueryService

_settings_instance: NetmeterSettings | None = None
_agent_config: AgentConfig | None = None
_ledger: TrafficLedger | None = None
_counter_source = None
_boot_time_source = None
_reset_policy: ResetPolicy | None = None
_accounting_loop: AccountingLoop | None = None
_query_service: QueryService | None = None


def get_app_settings() -> NetmeterSettings:
    """Get the process settings singleton."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = get_settings()
    return _settings_instance


def get_config_path() -> Path:
    return Path(get_app_settings().config_file)


def get_agent_config() -> AgentConfig:
    """Config file as loaded at startup. Raises ConfigIOError."""
    global _agent_config
    if _agent_config is None:
        _agent_config = load_or_create_agent_config(get_config_path())
    return _agent_config


def get_ledger_path() -> Path:
    return get_agent_config().resolve_data_file(get_config_path())


def get_ledger() -> TrafficLedger:
    """Ledger loaded from the data file. Raises LedgerIOError."""
    global _ledger
    if _ledger is None:
        _ledger = TrafficLedger.load(get_ledger_path())
    return _ledger


def get_counter_source() -> PsutilCounterSource:
    global _counter_source
    if _counter_source is None:
        _counter_source = PsutilCounterSource(get_agent_config().interface_name)
    return _counter_source


def get_boot_time_source():
    global _boot_time_source
    if _boot_time_source is None:
        settings = get_app_settings()
        _boot_time_source = make_boot_time_source(settings.boot_time_source, settings.command_timeout)
    return _boot_time_source


def get_reset_policy() -> ResetPolicy:
    global _reset_policy
    if _reset_policy is None:
        _reset_policy = ResetPolicy(
            config=get_agent_config(),
            config_path=get_config_path(),
            ledger=get_ledger(),
            ledger_path=get_ledger_path(),
        )
    return _reset_policy


def get_accounting_loop() -> AccountingLoop:
    global _accounting_loop
    if _accounting_loop is None:
        _accounting_loop = AccountingLoop(
            ledger=get_ledger(),
            ledger_path=get_ledger_path(),
            counter_source=get_counter_source(),
            boot_time_source=get_boot_time_source(),
            reset_policy=get_reset_policy(),
            tick_interval=get_app_settings().tick_interval,
        )
    return _accounting_loop


def get_query_service() -> QueryService:
    global _query_service
    if _query_service is None:
        _query_service = QueryService(
            ledger=get_ledger(),
            counter_source=get_counter_source(),
            reset_policy=get_reset_policy(),
        )
    return _query_service
