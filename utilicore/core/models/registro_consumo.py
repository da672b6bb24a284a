"""
Registros de consumo das utilidades municipais.

Um registro corresponde a uma fatura mensal de uma escola (ou outra unidade)
para um tipo de utilidade. O campo genérico `consumo` é preenchido a partir
da coluna específica do tipo (consumo_m3, consumo_kwh, consumo_mb).
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

import polars as pl
import pandera.polars as pa


class TipoUtilidade(str, Enum):
    """Tipos de utilidade acompanhados pelo painel."""

    AGUA = "agua"
    ENERGIA = "energia"
    TELEFONIA_FIXA = "telefonia_fixa"
    TELEFONIA_MOVEL = "telefonia_movel"

    @property
    def coluna_consumo(self) -> Optional[str]:
        """Coluna da tabela de origem que contém o consumo (None se não houver)."""
        return _COLUNAS_CONSUMO[self]

    @property
    def unidade(self) -> str:
        return _UNIDADES[self]

    @property
    def tabela(self) -> str:
        """Tabela do banco de origem."""
        return _TABELAS[self]

    @property
    def coluna_cadastro(self) -> str:
        return "cadastro" if self is TipoUtilidade.AGUA else "cadastro_cliente"


_COLUNAS_CONSUMO = {
    TipoUtilidade.AGUA: "consumo_m3",
    TipoUtilidade.ENERGIA: "consumo_kwh",
    TipoUtilidade.TELEFONIA_FIXA: None,
    TipoUtilidade.TELEFONIA_MOVEL: "consumo_mb",
}

_UNIDADES = {
    TipoUtilidade.AGUA: "m³",
    TipoUtilidade.ENERGIA: "kWh",
    TipoUtilidade.TELEFONIA_FIXA: "plano",
    TipoUtilidade.TELEFONIA_MOVEL: "MB",
}

_TABELAS = {
    TipoUtilidade.AGUA: "school_records",
    TipoUtilidade.ENERGIA: "energy_records",
    TipoUtilidade.TELEFONIA_FIXA: "fixed_line_records",
    TipoUtilidade.TELEFONIA_MOVEL: "mobile_records",
}


def como_float(valor: Any) -> float:
    """
    Converte um valor numérico vindo do banco em float.

    Valores ausentes, não numéricos, NaN ou infinitos valem 0.

    Example:
        >>> como_float("12.5"), como_float(None), como_float("abc")
        (12.5, 0.0, 0.0)
    """
    if valor is None or isinstance(valor, bool):
        return 0.0
    try:
        numero = float(valor)
    except (TypeError, ValueError):
        return 0.0
    return numero if math.isfinite(numero) else 0.0


def como_data(valor: Any) -> Optional[date]:
    """Converte uma data ISO (ou date/datetime) em date; None se inválida."""
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor
    if not isinstance(valor, str) or not valor.strip():
        return None
    try:
        return date.fromisoformat(valor.strip()[:10])
    except ValueError:
        return None


@dataclass(frozen=True)
class RegistroConsumo:
    """
    📌 Fatura mensal de uma unidade para um tipo de utilidade.

    Imutável: os agregadores apenas leem os registros.
    """

    tipo: TipoUtilidade
    nome_escola: str
    mes_ano_referencia: Optional[str]
    consumo: float = 0.0
    valor_gasto: float = 0.0
    valor_servicos: float = 0.0
    data_vencimento: Optional[date] = None
    cadastro: Optional[str] = None

    @classmethod
    def de_linha(cls, linha: Mapping[str, Any], tipo: TipoUtilidade) -> "RegistroConsumo":
        """
        Constrói um registro a partir de uma linha da tabela do tipo.

        Args:
            linha: Linha da tabela (school_records, energy_records, ...)
            tipo: Tipo de utilidade, que define a coluna de consumo

        Returns:
            RegistroConsumo com os campos numéricos convertidos (0 se ausentes)

        Example:
            >>> RegistroConsumo.de_linha(
            ...     {"nome_escola": "EMEF A", "mes_ano_referencia": "Janeiro/2025",
            ...      "consumo_kwh": 120, "valor_gasto": 300},
            ...     TipoUtilidade.ENERGIA,
            ... ).consumo
            120.0
        """
        tipo = TipoUtilidade(tipo)
        coluna = tipo.coluna_consumo
        cadastro = linha.get(tipo.coluna_cadastro) or linha.get("cadastro")
        return cls(
            tipo=tipo,
            nome_escola=str(linha.get("nome_escola") or ""),
            mes_ano_referencia=linha.get("mes_ano_referencia"),
            consumo=como_float(linha.get(coluna)) if coluna else 0.0,
            valor_gasto=como_float(linha.get("valor_gasto")),
            valor_servicos=como_float(linha.get("valor_servicos")),
            data_vencimento=como_data(linha.get("data_vencimento")),
            cadastro=str(cadastro) if cadastro is not None else None,
        )

    def como_dict(self) -> dict[str, Any]:
        return {
            "tipo": self.tipo.value,
            "nome_escola": self.nome_escola,
            "cadastro": self.cadastro,
            "mes_ano_referencia": self.mes_ano_referencia,
            "consumo": self.consumo,
            "valor_gasto": self.valor_gasto,
            "valor_servicos": self.valor_servicos,
            "data_vencimento": self.data_vencimento,
        }


SCHEMA_REGISTRO = {
    "tipo": pl.Utf8,
    "nome_escola": pl.Utf8,
    "cadastro": pl.Utf8,
    "mes_ano_referencia": pl.Utf8,
    "consumo": pl.Float64,
    "valor_gasto": pl.Float64,
    "valor_servicos": pl.Float64,
    "data_vencimento": pl.Date,
}


class RegistroConsumoPolars(pa.DataFrameModel):
    """
    📌 Modelo Pandera dos registros de consumo normalizados - Versão Polars.

    Todas as utilidades compartilham este formato; o tipo indica a unidade
    da coluna `consumo`.
    """

    # 🔹 Identificação
    tipo: pl.Utf8 = pa.Field(nullable=False, isin=[t.value for t in TipoUtilidade])
    nome_escola: pl.Utf8 = pa.Field(nullable=False)
    cadastro: pl.Utf8 = pa.Field(nullable=True)

    # 📆 Período
    mes_ano_referencia: pl.Utf8 = pa.Field(nullable=True)
    data_vencimento: pl.Date = pa.Field(nullable=True)

    # 💧⚡ Medidas
    consumo: pl.Float64 = pa.Field(ge=0)
    valor_gasto: pl.Float64 = pa.Field(ge=0)
    valor_servicos: pl.Float64 = pa.Field(ge=0)

    class Config:
        strict = False
        coerce = True


def registros_para_lazyframe(registros: Iterable[RegistroConsumo]) -> pl.LazyFrame:
    """
    Converte registros em LazyFrame no formato RegistroConsumoPolars.

    Uma sequência vazia produz um LazyFrame vazio com o schema completo.

    Example:
        >>> registros_para_lazyframe([]).collect().shape
        (0, 8)
    """
    linhas = [registro.como_dict() for registro in registros]
    colunas = {nome: [linha[nome] for linha in linhas] for nome in SCHEMA_REGISTRO}
    return pl.LazyFrame(colunas, schema=SCHEMA_REGISTRO)


def linhas_para_lazyframe(linhas: Iterable[Mapping[str, Any]], tipo: TipoUtilidade) -> pl.LazyFrame:
    """Atalho: linhas brutas de uma tabela -> LazyFrame de registros."""
    return registros_para_lazyframe(RegistroConsumo.de_linha(linha, tipo) for linha in linhas)
