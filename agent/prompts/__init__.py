"""
System prompt composition.

The prompt sent to the model is:

    strict identity prefix (assistant/company names, Portuguese-only rule)
    + prompt content
    + routing section (only for agents with enabled handoff routes)

Prompt content is the first non-empty source among: agent prompt file,
agent inline prompt, tenant prompt file, tenant inline prompt, the bundled
system_prompt.md, and a one-line fallback.
"""

import logging
from pathlib import Path

from shared.tenant_config import ResolvedAgent, TenantConfig

logger = logging.getLogger(__name__)

BUNDLED_PROMPT_PATH = Path(__file__).parent / "system_prompt.md"
FALLBACK_PROMPT = "Você é a AltraFlow, assistente virtual."

IDENTITY_PREFIX = (
    "# IDENTIDADE E REGRAS OBRIGATÓRIAS\n"
    "Você é {assistant_name}, assistente da {company_name}. Siga estritamente as instruções "
    "e o tom definidos abaixo. Não invente informações que não estejam nas instruções.\n"
    "- **Idioma:** Responda SEMPRE exclusivamente em português do Brasil. Não use palavras, "
    "caracteres, ideogramas ou símbolos de outros idiomas (nada de inglês, japonês, chinês, "
    "etc. no meio do texto).\n"
    "\n"
    "---\n"
)

ROUTING_SECTION = """

---
# ROTEAMENTO (OBRIGATÓRIO, FLUXO HUMANO)
Quando o cliente demonstrar intenção de **fazer pedido**, **comprar**, **ajuda com pedido** ou **operar financeiro** (boletos, 2ª via, etc.):
- **Reconheça só a intenção** e **ofereça a transferência**. NÃO faça perguntas sobre produtos, itens, como comprar ou qual produto o cliente quer: isso é papel do agente de destino (ex.: vendedor). Sua única ação é indicar que vai transferir e perguntar se pode transferir.
- **NÃO** peça CPF/CNPJ nem execute consultas de cliente. **NÃO** pergunte "qual produto?", "tem algo em mente?", "quer recomendação?": essas perguntas são do setor de vendas, não suas.
- **Primeiro** mensagem curta: informe que vai encaminhar para o setor correto e **pergunte se pode transferir** (ex.: "Vou te transferir para nosso setor de vendas para te ajudar com o pedido. Pode ser?"). **NÃO chame a ferramenta de transferência nesta mensagem**, apenas aguarde a confirmação do cliente.
- **Só depois** que o cliente **confirmar** (sim, pode, ok, claro, pode ser, etc.) você **DEVE** chamar a ferramenta **transferir_para_agente**. O agente de destino é quem fará perguntas sobre produtos e pedido."""


def read_prompt_file(path: str | None, base_dir: Path | None = None) -> str:
    """
    Read a prompt file; relative paths resolve against base_dir (cwd by default).

    Returns:
        The stripped file content, or "" when unset or unreadable (logged)
    """
    if not path or not path.strip():
        return ""
    full_path = Path(path.strip())
    if not full_path.is_absolute():
        full_path = (base_dir or Path.cwd()) / full_path
    try:
        return full_path.read_text(encoding="utf-8").strip()
    except OSError as e:
        logger.warning(f"Could not read prompt file | path={full_path} | error={e}")
        return ""


def load_tenant_prompt(tenant: TenantConfig, base_dir: Path | None = None) -> str:
    """Tenant prompt content: file, inline text, bundled prompt, then fallback."""
    content = read_prompt_file(tenant.prompt.system_prompt_path, base_dir)
    if content:
        return content
    if tenant.prompt.system_prompt and tenant.prompt.system_prompt.strip():
        return tenant.prompt.system_prompt.strip()
    return read_prompt_file(str(BUNDLED_PROMPT_PATH)) or FALLBACK_PROMPT


def build_system_prompt(
    agent: ResolvedAgent, tenant: TenantConfig, base_dir: Path | None = None
) -> str:
    """
    Compose the full system prompt for an agent.

    Example:
        >>> prompt = build_system_prompt(agent, tenant)
        >>> prompt.startswith("# IDENTIDADE E REGRAS OBRIGATÓRIAS")
        True
    """
    content = read_prompt_file(agent.system_prompt_path, base_dir)
    if not content and agent.system_prompt and agent.system_prompt.strip():
        content = agent.system_prompt.strip()
    if not content:
        content = load_tenant_prompt(tenant, base_dir)

    prompt = IDENTITY_PREFIX.format(
        assistant_name=agent.name or "Assistente",
        company_name=tenant.branding.company_name or "a empresa",
    ) + content

    if agent.handoff_enabled:
        prompt += ROUTING_SECTION
    return prompt
