"""
Test configuration and fixtures.

This module sets up test environment and provides shared fixtures for all tests.
Nothing here talks to the network: the chat model is scripted (FakeChatModel)
and outbound HTTP goes through an httpx.MockTransport.
"""

import json
import os

import httpx
import pytest
from langchain_core.messages import AIMessage

# Must be set BEFORE any imports of shared.config (get_settings is cached)
os.environ["OPENROUTER_API_KEY"] = "test-openrouter-key"
os.environ["SESSION_BACKEND"] = "memory"
os.environ["WEBHOOK_SECRET"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from agent.llm.model_orchestrator import ModelOrchestrator  # noqa: E402
from agent.routing.conversation_orchestrator import ConversationOrchestrator  # noqa: E402
from agent.state.session_store import (  # noqa: E402
    InMemoryCurrentAgentStore,
    InMemorySessionStore,
    Stores,
)
from shared.circuit_breaker import reset_breakers  # noqa: E402
from shared.config import Settings  # noqa: E402
from shared.tenant_config import TenantConfigResolver  # noqa: E402


# ============================================================================
# Scripted chat model
# ============================================================================


def ai_text(content: str, finish_reason: str = "stop") -> AIMessage:
    """Final assistant answer."""
    return AIMessage(content=content, response_metadata={"finish_reason": finish_reason})


def ai_tool_call(name: str, args: dict | None = None, call_id: str = "call_1") -> AIMessage:
    """Assistant message requesting one tool call."""
    return AIMessage(
        content="",
        tool_calls=[{"id": call_id, "name": name, "args": args or {}}],
        response_metadata={"finish_reason": "tool_calls"},
    )


class FakeChatModel:
    """
    Stand-in for ChatOpenAI.

    Each ainvoke() pops the next scripted response (the last one repeats).
    An Exception instance in the script is raised instead of returned.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [ai_text("Olá! Como posso ajudar?")])
        self.calls = []
        self.bound_tools = None
        self.agents = []

    def factory(self, agent, tenant, settings):
        self.agents.append(agent.id)
        return self

    def bind_tools(self, tools, tool_choice=None):
        self.bound_tools = tools
        return self

    def script(self, *responses):
        self.responses = list(responses)

    @property
    def bound_tool_names(self):
        return [t["function"]["name"] for t in self.bound_tools or []]

    async def ainvoke(self, messages):
        self.calls.append(list(messages))
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


# ============================================================================
# Tenant configuration on disk
# ============================================================================

MOCK_DATA = {
    "clientes": {
        "12345678000190": {
            "razao_social": "Construtora Alfa LTDA",
            "fantasia": "Construtora Alfa",
            "status": "ativo",
        },
        "98765432000100": {
            "razao_social": "Obras Beta LTDA",
            "status": "bloqueado",
            "motivo_bloqueio": "Títulos em atraso",
        },
    },
    "titulos": {
        "12345678000190": [
            {
                "numero_nota": "NF-1001",
                "valor_atualizado": 1500.5,
                "vencimento": "2024-05-10",
                "status": "vencido",
                "pdf_url": "https://erp.test/boletos/1001.pdf",
                "linha_digitavel": "34191.79001 01043.510047",
            },
            {
                "numero_nota": "NF-1002",
                "valor_atualizado": 320,
                "vencimento": "2024-07-10",
                "status": "a_vencer",
                "pdf_url": "https://erp.test/boletos/1002.pdf",
                "linha_digitavel": "34191.79001 01043.510048",
            },
        ]
    },
    "pedidos": {
        "12345678000190": [
            {
                "id": "PED-9001",
                "data": "2024-05-01",
                "valor_total": 2500,
                "status": "em_transito",
                "nfe": {"numero": "5501", "danfe_url": "https://erp.test/danfe/5501.pdf"},
                "rastreio": {"transportadora": "TransLog", "codigo": "TL123", "status": "em rota"},
            }
        ]
    },
    "estoque": [
        {
            "sku": "PROD-001",
            "nome": "Cimento CP II 50kg",
            "estoque_disponivel": 80,
            "preco_tabela": 34.9,
            "preco_promocional": 31.0,
        },
        {
            "sku": "PROD-002",
            "nome": "Argamassa AC-I 20kg",
            "estoque_disponivel": 0,
            "preco_tabela": 18.5,
            "preco_promocional": None,
        },
    ],
}

DEFAULT_TENANT = {
    "branding": {"companyName": "Distribuidora Teste", "assistantName": "Ana"},
    "api": {"baseUrl": "http://erp.test"},
    "prompt": {
        "systemPrompt": "Você atende clientes da distribuidora.",
        "greeting": "Olá! Sou a {{assistantName}} da {{companyName}}. Como posso ajudar?",
        "humanAgentMessage": "Um atendente vai falar com você.",
    },
    "features": {"orderFlowEnabled": True, "financialEnabled": True},
    "chatFlow": {
        "entryAgentId": "atendente",
        "humanEscalation": {
            "enabled": True,
            "message": "Chamando um atendente humano para você.",
            "webhookUrl": "http://hooks.test/escalation",
            "method": "POST",
        },
    },
    "assistants": [
        {"id": "atendente", "name": "Ana", "systemPrompt": "Você faz a triagem do atendimento."},
        {
            "id": "vendedor",
            "name": "Bruno",
            "systemPrompt": "Você é o vendedor.",
            "api": {"mode": "mock", "mockData": MOCK_DATA},
        },
    ],
}

ACME_TENANT = {
    "branding": {"companyName": "Acme", "assistantName": "Zé"},
    "prompt": {"humanAgentMessage": "Um colega da Acme já vai te atender."},
    "features": {"orderFlowEnabled": False},
}


@pytest.fixture(autouse=True)
def closed_breakers():
    """Every test starts with closed circuit breakers."""
    reset_breakers()
    yield
    reset_breakers()


@pytest.fixture
def tenant_dir(tmp_path):
    """Config directory with the default tenant and tenants/acme.json."""
    (tmp_path / "tenant.json").write_text(json.dumps(DEFAULT_TENANT), encoding="utf-8")
    (tmp_path / "tenants").mkdir()
    (tmp_path / "tenants" / "acme.json").write_text(json.dumps(ACME_TENANT), encoding="utf-8")
    return tmp_path


@pytest.fixture
def settings(tenant_dir):
    return Settings(
        OPENROUTER_API_KEY="test-openrouter-key",
        SESSION_BACKEND="memory",
        TENANT_CONFIG_DIR=str(tenant_dir),
        COMPANY_NAME="",
        ASSISTANT_NAME="",
        API_BASE_URL="",
        SYSTEM_PROMPT_PATH="",
        WEBHOOK_SECRET="",
    )


@pytest.fixture
def resolver(tenant_dir, settings):
    return TenantConfigResolver(tenant_dir, settings=settings)


@pytest.fixture
def stores():
    return Stores(sessions=InMemorySessionStore(), current_agents=InMemoryCurrentAgentStore())


@pytest.fixture
def http_requests():
    """Requests seen by http_transport."""
    return []


@pytest.fixture
def http_transport(http_requests):
    """ERP order endpoint answers with a receipt; everything else with {"ok": true}."""

    def handler(request: httpx.Request) -> httpx.Response:
        http_requests.append(request)
        if request.url.path == "/v1/vendas/pedido":
            return httpx.Response(
                200, json={"pedido_id": "PED-2024-001", "mensagem": "Entrega em até 3 dias úteis."}
            )
        return httpx.Response(200, json={"ok": True})

    return httpx.MockTransport(handler)


@pytest.fixture
def fake_model():
    return FakeChatModel()


@pytest.fixture
def model_orchestrator(resolver, settings, fake_model, http_transport):
    return ModelOrchestrator(
        resolver,
        settings,
        chat_model_factory=fake_model.factory,
        http_transport=http_transport,
    )


@pytest.fixture
def orchestrator(resolver, stores, model_orchestrator, settings, http_transport):
    return ConversationOrchestrator(
        resolver,
        stores,
        model=model_orchestrator,
        settings=settings,
        http_transport=http_transport,
    )
