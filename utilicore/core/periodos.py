"""
Classificação temporal dos registros de consumo.

Este módulo reúne as expressões Polars que transformam o mês de referência
textual ("Março/2025") em uma data ancorada no dia 15 e que associam cada
registro à estação do ano correspondente.

A âncora no meio do mês evita que um registro caia na estação errada por
causa de uma fronteira no início ou no fim do mês.
"""

import logging
import re
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence, Union

import polars as pl

from ..config import caminho_estacoes
from .models.estacao import Estacao, EstacaoPolars

logger = logging.getLogger(__name__)

DIA_ANCORA = 15

MESES = [
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
]

_NUMERO_MES = {nome: indice for indice, nome in enumerate(MESES, start=1)}
_NUMERO_MES["marco"] = 3

# Espaços removidos em volta do texto e das partes, iguais no Python e no Polars
_ESPACOS = " \t\n\r\f\v"

_PADRAO_ANO = re.compile(r"[0-9]+")
_PADRAO_ISO = re.compile(r"^([0-9]{4})-([0-9]{2})")

# Estações meteorológicas (hemisfério sul), na ordem de exibição
ESTACOES_METEOROLOGICAS = {
    "Verão": (12, 1, 2),
    "Outono": (3, 4, 5),
    "Inverno": (6, 7, 8),
    "Primavera": (9, 10, 11),
}


# =============================================================================
# MÊS DE REFERÊNCIA
# =============================================================================

def nome_mes(mes: int) -> str:
    """Nome do mês com inicial maiúscula ("Março" para 3)."""
    return MESES[mes - 1].capitalize()


def numero_mes(nome: str) -> Optional[int]:
    """Número do mês (1-12) a partir do nome em português; None se desconhecido."""
    return _NUMERO_MES.get(nome.strip(_ESPACOS).lower())


def _ancorar(ano: int, mes: int) -> Optional[datetime]:
    if not (1 <= ano <= 9999 and 1 <= mes <= 12):
        return None
    return datetime(ano, mes, DIA_ANCORA)


def interpretar_mes_referencia(valor: Any) -> Optional[datetime]:
    """
    Converte um mês de referência em data ancorada no dia 15.

    Formatos aceitos:
    - "<mês>/<ano>" com o nome do mês em português, sem distinção de
      maiúsculas e com espaços ignorados em volta das partes
    - "YYYY-MM" ou "YYYY-MM-DD" (sem "/")
    - date / datetime

    Args:
        valor: Mês de referência

    Returns:
        datetime(ano, mes, 15), ou None quando o valor não é interpretável

    Example:
        >>> interpretar_mes_referencia("Março/2025")
        datetime.datetime(2025, 3, 15, 0, 0)
        >>> interpretar_mes_referencia("13/2025") is None
        True
    """
    if isinstance(valor, (date, datetime)):
        return _ancorar(valor.year, valor.month)
    if not isinstance(valor, str):
        return None

    texto = valor.strip(_ESPACOS)
    if "/" in texto:
        partes = texto.split("/")
        if len(partes) != 2:
            return None
        mes = numero_mes(partes[0])
        ano = partes[1].strip(_ESPACOS)
        if mes is None or not _PADRAO_ANO.fullmatch(ano):
            return None
        return _ancorar(int(ano), mes)

    correspondencia = _PADRAO_ISO.match(texto)
    if correspondencia is None:
        return None
    return _ancorar(int(correspondencia.group(1)), int(correspondencia.group(2)))


def expr_data_referencia(col: str = "mes_ano_referencia") -> pl.Expr:
    """
    Expressão equivalente a interpretar_mes_referencia para uma coluna texto.

    Valores não interpretáveis resultam em null.

    Example:
        >>> df.with_columns(expr_data_referencia().alias("data_referencia"))
    """
    texto = pl.col(col).str.strip_chars(_ESPACOS)
    tem_barra = texto.str.contains("/", literal=True)

    # Formato "<mês>/<ano>": exatamente duas partes
    mes_barra = (
        texto.str.extract(r"^([^/]+)/[^/]+$", 1)
        .str.strip_chars(_ESPACOS)
        .str.to_lowercase()
        .replace_strict(_NUMERO_MES, default=None, return_dtype=pl.Int64)
    )
    ano_barra = texto.str.extract(rf"^[^/]+/[{_ESPACOS}]*([0-9]+)[{_ESPACOS}]*$", 1).cast(pl.Int64, strict=False)

    # Formato ISO
    mes_iso = texto.str.extract(r"^([0-9]{4})-([0-9]{2})", 2).cast(pl.Int64, strict=False)
    ano_iso = texto.str.extract(r"^([0-9]{4})-([0-9]{2})", 1).cast(pl.Int64, strict=False)

    ano = pl.when(tem_barra).then(ano_barra).otherwise(ano_iso)
    mes = pl.when(tem_barra).then(mes_barra).otherwise(mes_iso)
    valido = ano.is_between(1, 9999) & mes.is_between(1, 12)

    # Componentes inválidos viram null antes de montar a data
    return pl.datetime(
        pl.when(valido).then(ano),
        pl.when(valido).then(mes),
        DIA_ANCORA,
    )


def expr_rotulo_mes(col: str = "data_referencia") -> pl.Expr:
    """Rótulo abreviado "Mar/2025" a partir de uma coluna de data."""
    abreviacoes = {indice: nome[:3].capitalize() for indice, nome in enumerate(MESES, start=1)}
    return (
        pl.col(col).dt.month().replace_strict(abreviacoes, return_dtype=pl.Utf8)
        + pl.lit("/")
        + pl.col(col).dt.year().cast(pl.Utf8)
    )


def expr_filtrar_mes(mes: Optional[str]) -> pl.Expr:
    """
    Expressão booleana para filtrar registros por mês.

    - None: todos os registros
    - nome do mês ("dezembro"): aquele mês em qualquer ano
    - mês de referência ("Dezembro/2025", "2025-12"): aquele mês exato
    - qualquer outro valor: nenhum registro

    Example:
        >>> registros.filter(expr_filtrar_mes("Dezembro/2025"))
    """
    if mes is None:
        return pl.lit(True)

    numero = numero_mes(mes)
    if numero is not None:
        return expr_data_referencia().dt.month() == numero

    ancora = interpretar_mes_referencia(mes)
    if ancora is None:
        logger.debug(f"Filtro de mês não interpretável: {mes!r}")
        return pl.lit(False)
    return expr_data_referencia() == pl.lit(ancora)


# =============================================================================
# ESTAÇÕES ASTRONÔMICAS
# =============================================================================

def carregar_estacoes(caminho: Optional[Union[str, Path]] = None) -> pl.LazyFrame:
    """
    Carrega a tabela de estações a partir do CSV de configuração.

    Args:
        caminho: Tabela alternativa (atualização anual). Sem ele, usa a
            tabela indicada em parametros.yaml.

    Returns:
        LazyFrame no formato EstacaoPolars, na ordem do arquivo

    Example:
        >>> carregar_estacoes().collect()
    """
    caminho = caminho or caminho_estacoes()

    return (
        pl.scan_csv(
            caminho,
            schema_overrides={
                "ano_referencia": pl.Int64,
                "chave": pl.Utf8,
                "nome": pl.Utf8,
                "inicio": pl.Utf8,
                "fim": pl.Utf8,
                "cor": pl.Utf8,
                "icone": pl.Utf8,
            },
        )
        # Instantes em horário de Brasília, sem fuso
        .with_columns([
            pl.col("inicio").str.to_datetime("%Y-%m-%d %H:%M", time_unit="us"),
            pl.col("fim").str.to_datetime("%Y-%m-%d %H:%M", time_unit="us"),
        ])
    )


def estacoes_definidas(caminho: Optional[Union[str, Path]] = None) -> list[Estacao]:
    """Tabela de estações validada e convertida em objetos Estacao."""
    df = EstacaoPolars.validate(carregar_estacoes(caminho).collect())
    return [Estacao(**linha) for linha in df.iter_rows(named=True)]


def estacoes_para_lazyframe(estacoes: Iterable[Estacao]) -> pl.LazyFrame:
    """Converte objetos Estacao de volta ao formato da tabela."""
    linhas = [
        {
            "ano_referencia": e.ano_referencia,
            "chave": e.chave,
            "nome": e.nome,
            "inicio": e.inicio,
            "fim": e.fim,
            "cor": e.cor,
            "icone": e.icone,
        }
        for e in estacoes
    ]
    return pl.LazyFrame(
        linhas,
        schema={
            "ano_referencia": pl.Int64,
            "chave": pl.Utf8,
            "nome": pl.Utf8,
            "inicio": pl.Datetime("us"),
            "fim": pl.Datetime("us"),
            "cor": pl.Utf8,
            "icone": pl.Utf8,
        },
    )


def _tabela_estacoes(estacoes: Union[None, pl.LazyFrame, pl.DataFrame, Sequence[Estacao]]) -> pl.LazyFrame:
    if estacoes is None:
        return carregar_estacoes()
    if isinstance(estacoes, pl.DataFrame):
        return estacoes.lazy()
    if isinstance(estacoes, pl.LazyFrame):
        return estacoes
    return estacoes_para_lazyframe(estacoes)


def classificar_estacao(data: Union[date, datetime], estacoes: Optional[Sequence[Estacao]] = None) -> Optional[Estacao]:
    """
    Estação cujo intervalo [inicio, fim) contém a data.

    Uma `date` é tratada como meia-noite. Fora de todas as estações
    definidas, retorna None.

    Example:
        >>> classificar_estacao(datetime(2025, 3, 20, 6, 2)).nome
        'Outono 2025'
    """
    if estacoes is None:
        estacoes = estacoes_definidas()
    if not isinstance(data, datetime):
        data = datetime(data.year, data.month, data.day)

    for estacao in estacoes:
        if estacao.contem(data):
            return estacao
    return None


def expr_filtrar_estacao() -> pl.Expr:
    """Intervalo semiaberto: estacao_inicio <= data_referencia < estacao_fim."""
    return (
        (pl.col("data_referencia") >= pl.col("estacao_inicio"))
        & (pl.col("data_referencia") < pl.col("estacao_fim"))
    )


def classificar_estacoes(
    registros: pl.LazyFrame,
    estacoes: Union[None, pl.LazyFrame, pl.DataFrame, Sequence[Estacao]] = None,
) -> pl.LazyFrame:
    """
    Adiciona a data de referência e a estação de cada registro.

    Registros com mês de referência inválido ou fora das estações definidas
    são descartados.

    Args:
        registros: LazyFrame no formato RegistroConsumoPolars
        estacoes: Tabela de estações (opcional, carregada se None)

    Returns:
        LazyFrame com as colunas de origem mais data_referencia, estacao,
        estacao_chave, estacao_inicio, estacao_fim, cor, icone

    Example:
        >>> classificar_estacoes(registros).collect()
    """
    tabela = (
        _tabela_estacoes(estacoes)
        .with_row_index("_ordem_estacao")
        .select([
            "_ordem_estacao",
            pl.col("nome").alias("estacao"),
            pl.col("chave").alias("estacao_chave"),
            pl.col("inicio").alias("estacao_inicio"),
            pl.col("fim").alias("estacao_fim"),
            "cor",
            "icone",
        ])
    )

    com_data = (
        registros
        .with_columns(expr_data_referencia().alias("data_referencia"))
        .filter(pl.col("data_referencia").is_not_null())
        .with_row_index("_ordem_registro")
    )

    return (
        com_data
        .join(tabela, how="cross")
        .filter(expr_filtrar_estacao())
        .sort("_ordem_registro", "_ordem_estacao")
        .unique(subset="_ordem_registro", keep="first", maintain_order=True)
        .drop("_ordem_registro", "_ordem_estacao")
    )


def meses_abrangidos(estacao: Estacao) -> list[str]:
    """
    Meses civis que se sobrepõem à estação, no formato "Mês/Ano".

    Example:
        >>> meses_abrangidos(estacoes_definidas()[1])
        ['Março/2025', 'Abril/2025', 'Maio/2025', 'Junho/2025']
    """
    ultimo_instante = estacao.fim - timedelta(microseconds=1)
    ano, mes = estacao.inicio.year, estacao.inicio.month
    rotulos = []
    while (ano, mes) <= (ultimo_instante.year, ultimo_instante.month):
        rotulos.append(f"{nome_mes(mes)}/{ano}")
        ano, mes = (ano + 1, 1) if mes == 12 else (ano, mes + 1)
    return rotulos


# =============================================================================
# ESTAÇÕES METEOROLÓGICAS
# =============================================================================

_ESTACAO_DO_MES = {mes: nome for nome, meses in ESTACOES_METEOROLOGICAS.items() for mes in meses}


def estacao_meteorologica(mes: int) -> str:
    """Estação meteorológica de um mês (dezembro a fevereiro = Verão)."""
    try:
        return _ESTACAO_DO_MES[mes]
    except KeyError:
        raise ValueError(f"Mês inválido: {mes}") from None


def expr_estacao_meteorologica(col: str = "data_referencia") -> pl.Expr:
    """Estação meteorológica a partir de uma coluna de data (null se a data for null)."""
    return pl.col(col).dt.month().replace_strict(_ESTACAO_DO_MES, default=None, return_dtype=pl.Utf8)
