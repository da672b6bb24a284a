"""
Configuração global do pytest e fixtures compartilhadas do utilicore.

Centraliza as fixtures reutilizadas pelos testes (registros mínimos, tabela
de estações, base DuckDB temporária) e os hooks que marcam os testes
automaticamente.
"""

import tempfile
from datetime import date
from pathlib import Path
from typing import Generator

import duckdb
import polars as pl
import pytest

from utilicore.core.models import RegistroConsumo, TipoUtilidade, registros_para_lazyframe
from utilicore.core.periodos import estacoes_definidas


# =========================================================================
# FIXTURES - DADOS DE TESTE MÍNIMOS
# =========================================================================


def registro(
    nome_escola: str,
    mes: str,
    consumo: float = 0.0,
    valor: float = 0.0,
    servicos: float = 0.0,
    vencimento: date = None,
    tipo: TipoUtilidade = TipoUtilidade.AGUA,
    cadastro: str = None,
) -> RegistroConsumo:
    """Atalho para construir um RegistroConsumo nos testes."""
    return RegistroConsumo(
        tipo=tipo,
        nome_escola=nome_escola,
        mes_ano_referencia=mes,
        consumo=consumo,
        valor_gasto=valor,
        valor_servicos=servicos,
        data_vencimento=vencimento,
        cadastro=cadastro,
    )


@pytest.fixture
def registros_cenario_a() -> pl.LazyFrame:
    """Escola A em janeiro e fevereiro de 2025 (100/200 e 50/100)."""
    return registros_para_lazyframe([
        registro("A", "Janeiro/2025", consumo=100, valor=200),
        registro("A", "Fevereiro/2025", consumo=50, valor=100),
    ])


@pytest.fixture
def registros_escolas() -> pl.LazyFrame:
    """
    Três escolas em três meses, com um mês inválido e um registro sem valor.

    Contém o mínimo necessário para os resumos por escola, mês e estação.
    """
    return registros_para_lazyframe([
        registro("EMEF Alfa", "Novembro/2024", consumo=100, valor=1000, servicos=100, cadastro="111"),
        registro("EMEI Beta", "Novembro/2024", consumo=40, valor=400, cadastro="222"),
        registro("EMEF Alfa", "Dezembro/2024", consumo=150, valor=1200, servicos=100, cadastro="111"),
        registro("EMEI Beta", "Dezembro/2024", consumo=20, valor=300, cadastro="222"),
        registro("COMP Gama", "Dezembro/2024", consumo=10, valor=0, cadastro="333"),
        registro("EMEF Alfa", "Abril/2025", consumo=80, valor=900, cadastro="111"),
        registro("EMEI Beta", "13/2025", consumo=999, valor=999, cadastro="222"),
    ])


@pytest.fixture
def estacoes_padrao():
    """As cinco estações da tabela embarcada."""
    return estacoes_definidas()


# =========================================================================
# FIXTURES - CONEXÕES E RECURSOS
# =========================================================================


@pytest.fixture
def temp_duckdb_path() -> Generator[Path, None, None]:
    """
    Caminho de uma base DuckDB temporária para testes de integração.

    Limpeza automática ao fim do teste.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test_utilicore.duckdb"


@pytest.fixture
def duckdb_com_registros(temp_duckdb_path: Path) -> Path:
    """
    Base DuckDB com as quatro tabelas de utilidades preenchidas.

    Retorna o caminho da base, já fechada (os carregadores abrem em modo
    leitura).
    """
    conn = duckdb.connect(str(temp_duckdb_path))
    try:
        conn.execute("""
            CREATE TABLE school_records (
                nome_escola VARCHAR, cadastro VARCHAR, mes_ano_referencia VARCHAR,
                consumo_m3 DOUBLE, valor_gasto DOUBLE, valor_servicos DOUBLE,
                data_vencimento VARCHAR
            )
        """)
        conn.execute("""
            INSERT INTO school_records VALUES
                ('EMEF Alfa', '111', 'Janeiro/2025', 100, 200, 20, '2025-02-10'),
                ('EMEF Alfa', '111', 'Fevereiro/2025', 50, 100, NULL, NULL),
                ('EMEI Beta', '222', 'Janeiro/2025', NULL, 80, 0, 'data inválida')
        """)
        conn.execute("""
            CREATE TABLE energy_records (
                nome_escola VARCHAR, cadastro_cliente VARCHAR, mes_ano_referencia VARCHAR,
                consumo_kwh DOUBLE, valor_gasto DOUBLE, valor_servicos DOUBLE,
                data_vencimento DATE
            )
        """)
        conn.execute("""
            INSERT INTO energy_records VALUES
                ('EMEF Alfa', 'E-1', 'Janeiro/2025', 1200, 900, 0, DATE '2025-02-05')
        """)
        conn.execute("""
            CREATE TABLE fixed_line_records (
                nome_escola VARCHAR, cadastro_cliente VARCHAR, mes_ano_referencia VARCHAR,
                valor_gasto DOUBLE, valor_servicos DOUBLE, data_vencimento DATE
            )
        """)
        conn.execute("""
            INSERT INTO fixed_line_records VALUES
                ('EMEI Beta', 'F-1', 'Janeiro/2025', 89.9, 0, NULL)
        """)
        conn.execute("""
            CREATE TABLE mobile_records (
                nome_escola VARCHAR, cadastro_cliente VARCHAR, mes_ano_referencia VARCHAR,
                consumo_mb DOUBLE, valor_gasto DOUBLE, valor_servicos DOUBLE,
                data_vencimento DATE
            )
        """)
    finally:
        conn.close()

    return temp_duckdb_path


# =========================================================================
# HOOKS PYTEST
# =========================================================================


def pytest_configure(config):
    """Hook chamado após a leitura da configuração."""
    config.addinivalue_line(
        "markers", "wip: Testes em desenvolvimento (work in progress)"
    )


def pytest_collection_modifyitems(config, items):
    """
    Hook chamado após a coleta dos testes.

    Adiciona markers automaticamente segundo as convenções de diretório e nome.
    """
    for item in items:
        # Marker segundo o diretório
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)

        # Testes DuckDB
        if "duckdb" in item.nodeid.lower():
            item.add_marker(pytest.mark.duckdb)


def pytest_report_header(config):
    """Informações adicionais no cabeçalho do relatório."""
    return ["utilicore Test Suite"]


# =========================================================================
# FIXTURES - VALIDAÇÃO E ASSERÇÕES
# =========================================================================


@pytest.fixture
def assert_polars_schema_compatible():
    """
    Helper para verificar as colunas de um DataFrame Polars.

    Usage:
        def test_foo(assert_polars_schema_compatible):
            assert_polars_schema_compatible(df, colunas_esperadas)
    """
    def _assert_schema(df: pl.DataFrame, expected_columns: list[str]):
        actual_columns = set(df.columns)
        expected_set = set(expected_columns)

        missing = expected_set - actual_columns
        extra = actual_columns - expected_set

        assert not missing, f"Colunas ausentes: {missing}"
        assert not extra, f"Colunas inesperadas: {extra}"

    return _assert_schema


@pytest.fixture
def novo_registro():
    """Fábrica de RegistroConsumo (ver registro())."""
    return registro
