"""
Tenant configuration models and resolver.

Tenant documents live on disk as JSON:
    {TENANT_CONFIG_DIR}/tenant.json          -> tenant "default"
    {TENANT_CONFIG_DIR}/tenants/{id}.json    -> any other tenant

Documents use camelCase keys (companyName, handoffRules, ...). Models accept
both the camelCase alias and the snake_case field name.

The resolver is an explicit object: it owns an injected cache and exposes
invalidate() so callers reload configuration without restarting the process.
"""

import json
import logging
import re
from collections.abc import MutableMapping
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from shared.config import Settings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_TENANT_ID = "default"
# Tenant ids become file names under tenants/
TENANT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")
DEFAULT_TEMPERATURE = 0.3


class ConfigurationError(Exception):
    """Invalid or missing tenant/agent configuration."""


class TenantNotFoundError(ConfigurationError):
    """Raised when no configuration document exists for a tenant id."""

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant não encontrado: {tenant_id}")


def clamp_temperature(value: float | None) -> float | None:
    """Clamp a sampling temperature to [0, 2]; None stays None."""
    if value is None:
        return None
    return max(0.0, min(2.0, float(value)))


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


# =============================================================================
# Tenant document
# =============================================================================


class Branding(_ConfigModel):
    company_name: str = "AltraFlow"
    assistant_name: str = "AltraFlow"


class TenantApi(_ConfigModel):
    base_url: str = "http://localhost:3001"


class PromptConfig(_ConfigModel):
    system_prompt: str | None = None
    system_prompt_path: str | None = None
    greeting: str | None = None
    human_agent_message: str | None = None
    temperature: float = DEFAULT_TEMPERATURE
    order_flow_messages: dict[str, str] = Field(default_factory=dict)

    @field_validator("temperature", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        if value is None:
            return DEFAULT_TEMPERATURE
        return clamp_temperature(value)


class Features(_ConfigModel):
    order_flow_enabled: bool = True
    financial_enabled: bool = True


class FeatureOverrides(_ConfigModel):
    """Agent-level feature flags; None inherits the tenant value."""

    order_flow_enabled: bool | None = None
    financial_enabled: bool | None = None


class ApiRoutes(_ConfigModel):
    clientes: str = "/v1/clientes"
    titulos: str = "/v1/financeiro/titulos"
    pedidos: str = "/v1/faturamento/pedidos"
    estoque: str = "/v1/vendas/estoque"
    pedido_post: str = "/v1/vendas/pedido"


class MockData(_ConfigModel):
    """Inline fixture data for agents in mock mode."""

    clientes: dict[str, dict[str, Any]] = Field(default_factory=dict)
    titulos: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)
    pedidos: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)
    estoque: list[dict[str, Any]] = Field(default_factory=list)


class AssistantApiConfig(_ConfigModel):
    mode: Literal["production", "mock"] = "production"
    base_url: str | None = None
    routes: ApiRoutes = Field(default_factory=ApiRoutes)
    mock_data: MockData | None = None


class HandoffRoute(_ConfigModel):
    agent_id: str
    label: str = ""
    description: str = ""


class HandoffRules(_ConfigModel):
    enabled: bool = False
    routes: list[HandoffRoute] = Field(default_factory=list)


class AssistantConfig(_ConfigModel):
    id: str
    name: str = ""
    system_prompt: str | None = None
    system_prompt_path: str | None = None
    model: str | None = None
    temperature: float | None = None
    api: AssistantApiConfig | None = None
    features: FeatureOverrides | None = None
    handoff_rules: HandoffRules | None = None
    tool_ids: list[str] = Field(default_factory=list)

    @field_validator("temperature", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float | None:
        return clamp_temperature(value)


class BuiltinExecution(_ConfigModel):
    type: Literal["builtin"]
    key: str


class HttpExecution(_ConfigModel):
    type: Literal["http"]
    url: str
    method: Literal["GET", "POST"] = "POST"


ToolExecution = Annotated[Union[BuiltinExecution, HttpExecution], Field(discriminator="type")]


class ToolConfig(_ConfigModel):
    """A tool declared in configuration (built-in reference or custom HTTP call)."""

    id: str
    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )
    execution: ToolExecution


class HumanEscalation(_ConfigModel):
    enabled: bool = False
    message: str | None = None
    webhook_url: str | None = None
    method: Literal["GET", "POST"] = "POST"


class ChatFlow(_ConfigModel):
    entry_agent_id: str | None = None
    human_escalation: HumanEscalation | None = None


class TenantConfig(_ConfigModel):
    branding: Branding = Field(default_factory=Branding)
    api: TenantApi = Field(default_factory=TenantApi)
    prompt: PromptConfig = Field(default_factory=PromptConfig)
    features: Features = Field(default_factory=Features)
    assistants: list[AssistantConfig] = Field(default_factory=list)
    tools: list[ToolConfig] = Field(default_factory=list)
    chat_flow: ChatFlow | None = None


# =============================================================================
# Resolved agent
# =============================================================================


@dataclass(frozen=True)
class ResolvedAgent:
    """
    Effective configuration of one agent after merging agent overrides onto
    tenant defaults. Derived on every access, never stored.
    """

    id: str
    name: str
    system_prompt: str | None
    system_prompt_path: str | None
    model: str | None
    temperature: float
    features: Features
    api: AssistantApiConfig | None = None
    handoff_rules: HandoffRules | None = None
    tool_ids: tuple[str, ...] = ()

    @property
    def handoff_enabled(self) -> bool:
        return bool(self.handoff_rules and self.handoff_rules.enabled and self.handoff_rules.routes)

    @property
    def mock_mode(self) -> bool:
        return self.api is not None and self.api.mode == "mock"


# =============================================================================
# Resolver
# =============================================================================


class TenantConfigResolver:
    """
    Load tenant documents and resolve agents.

    Args:
        config_dir: Directory containing tenant.json and tenants/
        cache: Mapping used to memoize loaded tenants (a dict by default)
        settings: Settings providing environment overrides
    """

    def __init__(
        self,
        config_dir: str | Path,
        cache: MutableMapping[str, TenantConfig] | None = None,
        settings: Settings | None = None,
    ):
        self.config_dir = Path(config_dir)
        self._cache: MutableMapping[str, TenantConfig] = cache if cache is not None else {}
        self._settings = settings or get_settings()

    def get_tenant(self, tenant_id: str | None = None) -> TenantConfig:
        """
        Return the configuration of a tenant.

        Raises:
            TenantNotFoundError: No document exists for a non-default tenant
        """
        tid = (tenant_id or "").strip() or DEFAULT_TENANT_ID
        if not TENANT_ID_PATTERN.match(tid):
            logger.warning(f"Rejected malformed tenant id | tenant_id={tid!r}")
            raise TenantNotFoundError(tid)
        cached = self._cache.get(tid)
        if cached is not None:
            return cached

        path = self._tenant_path(tid)
        if not path.exists():
            if tid != DEFAULT_TENANT_ID:
                logger.warning(f"Tenant config not found | tenant_id={tid} | path={path}")
                raise TenantNotFoundError(tid)
            config = TenantConfig()
        else:
            config = self._load(path)

        config = self._apply_env_overrides(config)
        self._cache[tid] = config
        logger.info(
            f"Tenant config loaded | tenant_id={tid} | assistants={len(config.assistants)} | "
            f"tools={len(config.tools)}"
        )
        return config

    def invalidate(self, tenant_id: str | None = None) -> None:
        """Drop one tenant (or every tenant when tenant_id is None) from the cache."""
        if tenant_id is None:
            self._cache.clear()
            logger.info("Tenant config cache cleared")
            return
        self._cache.pop(tenant_id.strip() or DEFAULT_TENANT_ID, None)
        logger.info(f"Tenant config invalidated | tenant_id={tenant_id}")

    def resolve_agent(self, tenant_id: str | None, agent_id: str | None = None) -> ResolvedAgent:
        """
        Resolve the effective agent for (tenant, agent id).

        Blank agent id, or a tenant without assistants, yields the tenant's
        default agent. An unknown id falls back to the first assistant.
        """
        config = self.get_tenant(tenant_id)
        aid = (agent_id or "").strip()

        if not config.assistants or not aid:
            return ResolvedAgent(
                id=aid.lower() or DEFAULT_TENANT_ID,
                name=config.branding.assistant_name or "Assistente",
                system_prompt=config.prompt.system_prompt,
                system_prompt_path=config.prompt.system_prompt_path,
                model=None,
                temperature=config.prompt.temperature,
                features=config.features,
            )

        target = next(
            (a for a in config.assistants if a.id.lower() == aid.lower()),
            None,
        )
        if target is None:
            target = config.assistants[0]
            logger.warning(
                f"Unknown agent, using first assistant | tenant_id={tenant_id} | "
                f"agent_id={aid} | fallback={target.id}"
            )

        return ResolvedAgent(
            id=target.id.lower(),
            name=target.name.strip() or config.branding.assistant_name or "Assistente",
            system_prompt=target.system_prompt,
            system_prompt_path=target.system_prompt_path,
            model=target.model,
            temperature=(
                target.temperature if target.temperature is not None else config.prompt.temperature
            ),
            features=self._merge_features(config.features, target.features),
            api=target.api,
            handoff_rules=self._handoff_rules_for(config, target),
            tool_ids=tuple(target.tool_ids),
        )

    # ------------------------------------------------------------------

    def _tenant_path(self, tenant_id: str) -> Path:
        if tenant_id == DEFAULT_TENANT_ID:
            return self.config_dir / "tenant.json"
        return self.config_dir / "tenants" / f"{tenant_id}.json"

    def _load(self, path: Path) -> TenantConfig:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return TenantConfig.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Could not load tenant config, using defaults | path={path} | error={e}")
            return TenantConfig()

    def _apply_env_overrides(self, config: TenantConfig) -> TenantConfig:
        s = self._settings
        branding = config.branding.model_copy(
            update={
                "company_name": s.COMPANY_NAME.strip() or config.branding.company_name,
                "assistant_name": s.ASSISTANT_NAME.strip() or config.branding.assistant_name,
            }
        )
        api = config.api.model_copy(
            update={"base_url": s.API_BASE_URL.strip() or config.api.base_url}
        )
        prompt = config.prompt.model_copy(
            update={
                "system_prompt_path": s.SYSTEM_PROMPT_PATH.strip() or config.prompt.system_prompt_path
            }
        )
        return config.model_copy(update={"branding": branding, "api": api, "prompt": prompt})

    @staticmethod
    def _merge_features(tenant: Features, overrides: FeatureOverrides | None) -> Features:
        if overrides is None:
            return tenant
        return Features(
            order_flow_enabled=(
                overrides.order_flow_enabled
                if overrides.order_flow_enabled is not None
                else tenant.order_flow_enabled
            ),
            financial_enabled=(
                overrides.financial_enabled
                if overrides.financial_enabled is not None
                else tenant.financial_enabled
            ),
        )

    @staticmethod
    def _handoff_rules_for(config: TenantConfig, target: AssistantConfig) -> HandoffRules | None:
        rules = target.handoff_rules
        if rules and rules.enabled and rules.routes:
            return rules

        # The entry agent routes to every other assistant unless told otherwise
        entry_id = (config.chat_flow.entry_agent_id or "") if config.chat_flow else ""
        if entry_id and target.id.lower() == entry_id.lower() and len(config.assistants) > 1:
            others = [a for a in config.assistants if a.id.lower() != entry_id.lower()]
            return HandoffRules(
                enabled=True,
                routes=[
                    HandoffRoute(
                        agent_id=a.id,
                        label=a.name or a.id,
                        description=f"Transferir para {a.name or a.id}",
                    )
                    for a in others
                ],
            )
        return rules


@lru_cache
def get_resolver() -> TenantConfigResolver:
    """Process-wide resolver built from settings."""
    settings = get_settings()
    return TenantConfigResolver(settings.TENANT_CONFIG_DIR, settings=settings)
