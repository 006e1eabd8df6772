"""
Reference customer records.

Used by ErpClient as the last resort for customer validation when the ERP
lookup fails, so demos keep working without a reachable backend. Keys are
documents as digits only.
"""

from typing import Any

FIXTURE_CUSTOMERS: dict[str, dict[str, Any]] = {
    "12345678000190": {
        "id": "CUST-001",
        "razao_social": "Mercadinho Exemplo LTDA",
        "fantasia": "Mercadinho do João",
        "documento": "12.345.678/0001-90",
        "status": "ativo",
        "segmento": "Varejo Alimentar",
        "vendedor": {"id": "V-01", "nome": "Carlos Almeida"},
    },
    "12345678000195": {
        "id": "CUST-TEST",
        "razao_social": "Cliente Teste LTDA",
        "fantasia": "Cliente Teste",
        "documento": "12.345.678/0001-95",
        "status": "ativo",
        "segmento": "Varejo",
        "vendedor": {"id": "V-01", "nome": "Carlos Almeida"},
    },
    "98765432000100": {
        "id": "CUST-002",
        "razao_social": "Padaria da Esquina EIRELI",
        "fantasia": "Pão Quente",
        "documento": "98.765.432/0001-00",
        "status": "bloqueado",
        "motivo_bloqueio": "Inadimplência: títulos vencidos há mais de 30 dias",
        "segmento": "Alimentação",
        "vendedor": {"id": "V-02", "nome": "Ana Paula Santos"},
    },
    "11122233000144": {
        "id": "CUST-003",
        "razao_social": "Construções Silva ME",
        "fantasia": "Silva Materiais",
        "documento": "11.122.233/0001-44",
        "status": "inativo",
        "motivo_bloqueio": "Inatividade superior a 180 dias",
        "segmento": "Construção Civil",
        "vendedor": {"id": "V-03", "nome": "Roberto Costa"},
    },
    "55566677000188": {
        "id": "CUST-004",
        "razao_social": "Construtora Horizonte S.A.",
        "fantasia": "Horizonte Engenharia",
        "documento": "55.566.677/0001-88",
        "status": "ativo",
        "segmento": "Construção Civil",
        "vendedor": {"id": "V-01", "nome": "Carlos Almeida"},
    },
    "52998224725": {
        "id": "CUST-005",
        "razao_social": "José Ferreira da Silva",
        "fantasia": "José F. Silva",
        "documento": "529.982.247-25",
        "status": "ativo",
        "segmento": "Pessoa Física",
        "vendedor": {"id": "V-02", "nome": "Ana Paula Santos"},
    },
    "33344455000166": {
        "id": "CUST-006",
        "razao_social": "Depósito Central LTDA",
        "fantasia": "Depósito Central",
        "documento": "33.344.455/0001-66",
        "status": "bloqueado",
        "motivo_bloqueio": "Limite de crédito excedido",
        "segmento": "Atacado",
        "vendedor": {"id": "V-03", "nome": "Roberto Costa"},
    },
}
