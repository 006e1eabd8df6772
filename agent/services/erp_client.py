"""
ERP client for customer, financial, order and stock data.

One ErpClient is built per (tenant, agent) for the duration of a request.
Agents in mock mode read the inline fixture data of their configuration;
agents in production mode call the ERP over HTTP:

    base URL = agent api.baseUrl (production mode only) or tenant api.baseUrl
    route    = agent api.routes.{key} or the default route for the key

Every HTTP call goes through the "erp" circuit breaker. ErpClient implements
the OrderBackend protocol used by the order flow (validate_customer and
submit_order).
"""

import logging
import re
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from agent.fsm.models import (
    CustomerStatus,
    CustomerValidation,
    OrderReceipt,
    OrderRequest,
    OrderSubmissionError,
)
from agent.services.fixtures import FIXTURE_CUSTOMERS
from agent.utils.document import mask_document, normalize_document
from shared.circuit_breaker import call_with_breaker, erp_breaker
from shared.config import Settings, get_settings
from shared.tenant_config import ApiRoutes, ResolvedAgent, TenantConfig

logger = logging.getLogger(__name__)

_PADDED_BRANCH = re.compile(r"00(\d{3})$")

BLOCKED_STATUS = "bloqueado"
ACTIVE_STATUS = "ativo"


def customer_display_name(record: dict[str, Any]) -> str:
    """Trade name, then legal name, then generic name, then 'Cliente'."""
    return (
        record.get("fantasia")
        or record.get("razao_social")
        or record.get("name")
        or "Cliente"
    )


def validation_from_record(record: dict[str, Any]) -> CustomerValidation:
    """Map a customer record's status to the three-way validation result."""
    status = str(record.get("status") or "").lower()
    name = customer_display_name(record)
    if status == BLOCKED_STATUS:
        return CustomerValidation(
            CustomerStatus.BLOCKED, name=name, reason=record.get("motivo_bloqueio")
        )
    if status == ACTIVE_STATUS:
        return CustomerValidation(CustomerStatus.VALID, name=name)
    return CustomerValidation(CustomerStatus.NOT_FOUND, name=name, reason=record.get("motivo_bloqueio"))


class ErpClient:
    """
    Tenant/agent scoped access to the ERP.

    Args:
        tenant: Tenant configuration (fallback base URL)
        agent: Resolved agent (mode, routes, mock data)
        settings: Settings providing timeouts
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        tenant: TenantConfig,
        agent: ResolvedAgent,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.tenant = tenant
        self.agent = agent
        self._settings = settings or get_settings()
        self._transport = transport
        self.timeout = float(self._settings.ERP_REQUEST_TIMEOUT)

    @property
    def base_url(self) -> str:
        api = self.agent.api
        if api is not None and api.mode == "production" and api.base_url:
            return api.base_url.rstrip("/")
        return (self.tenant.api.base_url or "http://localhost:3001").rstrip("/")

    def route(self, key: str) -> str:
        routes = self.agent.api.routes if self.agent.api is not None else ApiRoutes()
        return getattr(routes, key) or getattr(ApiRoutes(), key)

    def mock_section(self, section: str) -> Any | None:
        """Fixture data for a section when the agent is in mock mode, else None."""
        if not self.agent.mock_mode or self.agent.api.mock_data is None:
            return None
        return getattr(self.agent.api.mock_data, section)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get(self, url: str, params: dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response

    async def _post(self, url: str, body: dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            response = await client.post(url, json=body)
            response.raise_for_status()
            return response

    async def get_json(self, route_key: str, params: dict[str, Any]) -> Any:
        """
        GET {base}{route} and decode the JSON body.

        Raises:
            httpx.HTTPError: Transport failure or non-2xx status
            pybreaker.CircuitBreakerError: ERP circuit is open
        """
        url = f"{self.base_url}{self.route(route_key)}"
        logger.debug(f"ERP GET | url={url} | agent_id={self.agent.id}")
        response = await call_with_breaker(erp_breaker, self._get, url, params)
        return response.json()

    async def post_json(self, route_key: str, body: dict[str, Any]) -> Any:
        url = f"{self.base_url}{self.route(route_key)}"
        logger.debug(f"ERP POST | url={url} | agent_id={self.agent.id}")
        response = await call_with_breaker(erp_breaker, self._post, url, body)
        return response.json()

    # ------------------------------------------------------------------
    # OrderBackend
    # ------------------------------------------------------------------

    async def validate_customer(self, document: str) -> CustomerValidation:
        """
        Three-way customer lookup.

        Order of sources: the agent's fixture customers (mock mode, also
        trying the CNPJ written without the "00" branch padding), the ERP
        customer route, then the reference fixture customers when the ERP
        call fails.
        """
        digits = normalize_document(document)

        clientes = self.mock_section("clientes")
        if clientes:
            record = clientes.get(digits)
            if record is None and len(digits) == 14:
                record = clientes.get(_PADDED_BRANCH.sub(r"\1", digits))
            if isinstance(record, dict):
                logger.info(
                    f"Customer found in agent fixtures | document={mask_document(digits)} | "
                    f"status={record.get('status')}"
                )
                return validation_from_record(record)

        try:
            record = await self.get_json("clientes", {"doc": document})
        except Exception as e:
            logger.warning(
                f"Customer lookup failed, using reference customers | "
                f"document={mask_document(digits)} | error={e}"
            )
            fallback = FIXTURE_CUSTOMERS.get(digits)
            if fallback is None:
                return CustomerValidation(CustomerStatus.NOT_FOUND)
            return validation_from_record(fallback)

        if not isinstance(record, dict):
            return CustomerValidation(CustomerStatus.NOT_FOUND)
        return validation_from_record(record)

    async def submit_order(self, request: OrderRequest) -> OrderReceipt:
        """
        POST the order to the ERP.

        Raises:
            OrderSubmissionError: The ERP could not be reached or rejected the order
        """
        body = {
            "documento": request.document,
            "cliente_nome": request.customer_name,
            "itens": [
                {
                    "sku": item.sku,
                    "nome": item.name,
                    "quantidade": item.quantity,
                    "preco_unitario": item.unit_price,
                }
                for item in request.items
            ],
        }
        try:
            data = await self.post_json("pedido_post", body)
        except Exception as e:
            raise OrderSubmissionError(str(e)) from e

        data = data if isinstance(data, dict) else {}
        default = OrderReceipt()
        return OrderReceipt(
            order_id=str(data.get("pedido_id") or default.order_id),
            message=data.get("mensagem") or default.message,
        )
