"""
Unit tests for the tool registry and effective tool selection.
"""

import json

import pytest

from agent.services.erp_client import ErpClient
from agent.tools.erp_tools import BUILTIN_TOOLS
from agent.tools.escalation_tools import ESCALATION_TOOL_NAME, parse_escalation_output
from agent.tools.handoff_tools import HANDOFF_TOOL_NAME, parse_handoff_output
from agent.tools.registry import (
    TOOL_NOT_FOUND_MESSAGE,
    ToolContext,
    ToolKind,
    ToolRegistry,
    ToolSpec,
    build_effective_tools,
)
from shared.tenant_config import TenantConfig, TenantConfigResolver


def write_tenant(path, document):
    (path / "tenant.json").write_text(json.dumps(document), encoding="utf-8")


def make_context(resolver, settings, tenant_id=None, agent_id=None):
    tenant = resolver.get_tenant(tenant_id)
    agent = resolver.resolve_agent(tenant_id, agent_id)
    return ToolContext(
        tenant_id=tenant_id or "default",
        tenant=tenant,
        agent=agent,
        erp=ErpClient(tenant, agent, settings),
        settings=settings,
    )


class TestBuildEffectiveTools:
    def test_entry_agent_gets_builtin_handoff_and_escalation(self, resolver):
        """Test builtin tools plus handoff (routes) and escalation (chat flow)."""
        tenant = resolver.get_tenant(None)
        agent = resolver.resolve_agent(None, "atendente")

        registry = build_effective_tools(tenant, agent)

        assert registry.names == [*BUILTIN_TOOLS, HANDOFF_TOOL_NAME, ESCALATION_TOOL_NAME]

    def test_handoff_tool_lists_routes(self, resolver):
        """Test the handoff tool's agent enum comes from the routes."""
        tenant = resolver.get_tenant(None)
        agent = resolver.resolve_agent(None, "atendente")

        spec = build_effective_tools(tenant, agent).get(HANDOFF_TOOL_NAME)

        assert spec.kind == ToolKind.HANDOFF
        assert spec.parameters["properties"]["agente"]["enum"] == ["vendedor"]
        assert '"vendedor" = Bruno' in spec.description

    def test_feature_flags_gate_builtin_tools(self, resolver):
        """Test tenants without order flow lose the stock tool; no escalation without chat flow."""
        tenant = resolver.get_tenant("acme")
        agent = resolver.resolve_agent("acme", None)

        registry = build_effective_tools(tenant, agent)

        assert "consultar_estoque" not in registry
        assert "consultar_titulos" in registry
        assert ESCALATION_TOOL_NAME not in registry
        assert HANDOFF_TOOL_NAME not in registry

    def test_tool_ids_allow_list(self, tmp_path, settings):
        """Test toolIds pick builtin names and configured tools, skipping unknown ids."""
        write_tenant(
            tmp_path,
            {
                "assistants": [{"id": "lia", "toolIds": ["consultar_estoque", "frete", "nada"]}],
                "tools": [
                    {
                        "id": "frete",
                        "name": "calcular_frete",
                        "description": "Calcula o frete.",
                        "parameters": {
                            "type": "object",
                            "properties": {"cep": {"type": "string"}},
                            "required": ["cep"],
                        },
                        "execution": {"type": "http", "url": "http://frete.test/calc", "method": "GET"},
                    }
                ],
            },
        )
        resolver = TenantConfigResolver(tmp_path, settings=settings)

        registry = build_effective_tools(resolver.get_tenant(None), resolver.resolve_agent(None, "lia"))

        assert registry.names == ["consultar_estoque", "calcular_frete"]
        assert registry.get("calcular_frete").kind == ToolKind.HTTP
        assert registry.definitions()[1]["function"]["parameters"]["required"] == ["cep"]

    def test_configured_builtin_alias(self, tmp_path, settings):
        """Test a configured builtin tool keeps its name and reuses the executor."""
        write_tenant(
            tmp_path,
            {
                "assistants": [{"id": "lia", "toolIds": ["estoque", "quebrada"]}],
                "tools": [
                    {
                        "id": "estoque",
                        "name": "buscar_produto",
                        "execution": {"type": "builtin", "key": "consultar_estoque"},
                    },
                    {
                        "id": "quebrada",
                        "name": "ferramenta_x",
                        "execution": {"type": "builtin", "key": "nao_existe"},
                    },
                ],
            },
        )
        resolver = TenantConfigResolver(tmp_path, settings=settings)

        registry = build_effective_tools(resolver.get_tenant(None), resolver.resolve_agent(None, "lia"))

        assert registry.get("buscar_produto").executor is BUILTIN_TOOLS["consultar_estoque"].executor
        assert registry.get("ferramenta_x").kind == ToolKind.BUILTIN


class TestToolRegistry:
    @pytest.mark.asyncio
    async def test_unknown_tool(self, resolver, settings):
        """Test unknown names return a message instead of raising."""
        registry = ToolRegistry()

        result = await registry.execute("inexistente", {}, make_context(resolver, settings))

        assert result == TOOL_NOT_FOUND_MESSAGE
        assert not registry

    @pytest.mark.asyncio
    async def test_executor_failure_reported(self, resolver, settings):
        """Test executor exceptions become 'Erro técnico: ...'."""

        async def boom(context, args):
            raise RuntimeError("falhou")

        registry = ToolRegistry.of(
            [ToolSpec("quebra", ToolKind.BUILTIN, "x", {"type": "object"}, boom)]
        )

        result = await registry.execute("quebra", None, make_context(resolver, settings))

        assert result == "Erro técnico: falhou"

    @pytest.mark.asyncio
    async def test_missing_builtin_key(self, tmp_path, settings):
        """Test a configured builtin pointing nowhere reports the missing key."""
        from agent.tools.erp_tools import builtin_from_config
        from shared.tenant_config import ToolConfig

        write_tenant(tmp_path, {})
        resolver = TenantConfigResolver(tmp_path, settings=settings)
        config = ToolConfig.model_validate(
            {"id": "x", "name": "x", "execution": {"type": "builtin", "key": "nao_existe"}}
        )
        registry = ToolRegistry.of([builtin_from_config(config)])

        result = await registry.execute("x", {}, make_context(resolver, settings))

        assert result == 'Ferramenta built-in "nao_existe" não encontrada.'

    def test_definition_format(self):
        """Test definitions use the OpenAI function-calling shape."""
        definition = BUILTIN_TOOLS["consultar_estoque"].definition()

        assert definition["type"] == "function"
        assert definition["function"]["name"] == "consultar_estoque"
        assert definition["function"]["parameters"]["required"] == ["busca"]
        assert "title" not in definition["function"]["parameters"]


class TestSignalTools:
    @pytest.mark.asyncio
    async def test_handoff_tool_output(self, resolver, settings):
        """Test the handoff executor emits a marker parse_handoff_output understands."""
        context = make_context(resolver, settings, agent_id="atendente")
        spec = build_effective_tools(context.tenant, context.agent).get(HANDOFF_TOOL_NAME)

        output = await spec.executor(context, {"agente": "vendedor", "mensagem_transicao": "Já te passo!"})
        signal = parse_handoff_output(output)

        assert signal.target_agent_id == "vendedor"
        assert signal.transition_message == "Já te passo!"

    @pytest.mark.asyncio
    async def test_handoff_default_transition(self, resolver, settings):
        """Test a blank transition message is replaced by the default."""
        context = make_context(resolver, settings, agent_id="atendente")
        spec = build_effective_tools(context.tenant, context.agent).get(HANDOFF_TOOL_NAME)

        signal = parse_handoff_output(await spec.executor(context, {"agente": "vendedor"}))

        assert signal.transition_message == "Transferindo para o próximo agente."

    def test_parse_ignores_ordinary_results(self):
        """Test plain tool results are not signals."""
        assert parse_handoff_output('[{"nome": "Cimento"}]') is None
        assert parse_handoff_output("Cliente não encontrado.") is None
        assert parse_handoff_output('{"__handoff__": true, "targetAgentId": ""}') is None
        assert parse_escalation_output('{"ok": true}') is None

    @pytest.mark.asyncio
    async def test_escalation_tool_output(self, resolver, settings):
        """Test the escalation executor emits the reason marker."""
        context = make_context(resolver, settings)
        spec = build_effective_tools(context.tenant, context.agent).get(ESCALATION_TOOL_NAME)

        request = parse_escalation_output(await spec.executor(context, {"motivo": "Reclamação"}))
        fallback = parse_escalation_output(await spec.executor(context, {}))

        assert request.reason == "Reclamação"
        assert fallback.reason == "Solicitação do cliente"
        assert spec.parameters["required"] == ["motivo"]


def test_empty_tenant_default_agent_has_all_builtins(tmp_path, settings):
    """Test a bare tenant exposes every builtin tool and nothing else."""
    blank = tmp_path / "blank"
    blank.mkdir()
    resolver = TenantConfigResolver(blank, settings=settings)

    registry = build_effective_tools(TenantConfig(), resolver.resolve_agent(None, None))

    assert registry.names == list(BUILTIN_TOOLS)
