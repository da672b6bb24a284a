"""
Testes da agregação por chave e das classificações de resumo.
"""

import math

import polars as pl
import pytest
from polars.testing import assert_frame_equal

from utilicore.core.models import COLUNAS_RESUMO, registros_para_lazyframe
from utilicore.core.pipelines.agregacao import (
    agregar_por,
    agregar_por_escola,
    arredondar,
    arredondar_para_exibicao,
    classificar,
    comparativo_escolas,
    expr_arredondar,
    expr_valor_numerico,
    primeiros,
    ultimos,
)


# =========================================================================
# AGREGAR_POR
# =========================================================================


class TestAgregarPor:

    def test_cenario_escola_unica(self, registros_cenario_a):
        """Dois meses da escola A: totais, médias e índice de eficiência."""
        resumo = agregar_por(registros_cenario_a, "nome_escola")

        assert resumo.height == 1
        linha = resumo.row(0, named=True)
        assert linha["chave"] == "A"
        assert linha["consumo_total"] == 150.0
        assert linha["valor_total"] == 300.0
        assert linha["quantidade_registros"] == 2
        assert linha["consumo_medio"] == 75.0
        assert linha["valor_medio"] == 150.0
        assert linha["indice_eficiencia"] == 500.0

    def test_entrada_vazia(self):
        resumo = agregar_por(registros_para_lazyframe([]), "nome_escola")

        assert resumo.height == 0
        assert resumo.columns == COLUNAS_RESUMO

    def test_aceita_dataframe(self, registros_cenario_a):
        assert_frame_equal(
            agregar_por(registros_cenario_a.collect()),
            agregar_por(registros_cenario_a),
        )

    def test_ordem_da_primeira_ocorrencia(self, registros_escolas):
        resumo = agregar_por(registros_escolas, "nome_escola")
        assert resumo["chave"].to_list() == ["EMEF Alfa", "EMEI Beta", "COMP Gama"]

    def test_totais_por_escola(self, registros_escolas):
        resumo = agregar_por(registros_escolas, "nome_escola")
        alfa = resumo.filter(pl.col("chave") == "EMEF Alfa").row(0, named=True)

        assert alfa["consumo_total"] == 330.0
        assert alfa["valor_total"] == 3100.0
        assert alfa["valor_servicos_total"] == 200.0
        assert alfa["quantidade_registros"] == 3

    def test_valor_zero_sem_eficiencia(self, registros_escolas):
        """Escola sem gasto: índice de eficiência 0 em vez de divisão por zero."""
        resumo = agregar_por(registros_escolas, "nome_escola")
        gama = resumo.filter(pl.col("chave") == "COMP Gama").row(0, named=True)

        assert gama["valor_medio"] == 0.0
        assert gama["indice_eficiencia"] == 0.0

    def test_chave_por_expressao(self, registros_escolas):
        resumo = agregar_por(registros_escolas, pl.col("nome_escola").str.split(" ").list.first())
        assert resumo["chave"].to_list() == ["EMEF", "EMEI", "COMP"]

    def test_valores_ausentes_e_nao_finitos(self):
        """Nulos, NaN e infinitos contam como registro mas valem 0."""
        registros = pl.LazyFrame({
            "nome_escola": ["A", "A", "A", "A"],
            "consumo": [None, float("nan"), float("inf"), 5.0],
            "valor_gasto": [10.0, None, 10.0, float("nan")],
            "valor_servicos": [0.0, 0.0, None, 0.0],
        })

        linha = agregar_por(registros).row(0, named=True)

        assert linha["consumo_total"] == 5.0
        assert linha["valor_total"] == 20.0
        assert linha["valor_servicos_total"] == 0.0
        assert linha["quantidade_registros"] == 4

    def test_extras_apos_colunas_do_resumo(self, registros_escolas):
        resumo = agregar_por(
            registros_escolas,
            "nome_escola",
            extras=[pl.col("mes_ano_referencia").n_unique().alias("meses")],
        )

        assert resumo.columns == [*COLUNAS_RESUMO, "meses"]
        assert resumo["meses"].to_list() == [3, 3, 1]

    def test_totais_nao_arredondados(self):
        registros = pl.LazyFrame({
            "nome_escola": ["A", "A"],
            "consumo": [0.1, 0.2],
            "valor_gasto": [0.333, 0.333],
            "valor_servicos": [0.0, 0.0],
        })

        linha = agregar_por(registros).row(0, named=True)

        assert linha["consumo_total"] == pytest.approx(0.3)
        assert linha["valor_total"] == pytest.approx(0.666)


class TestAgregarPorEscola:

    def test_sem_filtro(self, registros_escolas):
        resumo = agregar_por_escola(registros_escolas)

        assert resumo["chave"].to_list() == ["EMEF Alfa", "EMEI Beta", "COMP Gama"]
        assert resumo["cadastros"].to_list() == [["111"], ["222"], ["333"]]

    def test_nome_do_mes(self, registros_escolas):
        resumo = agregar_por_escola(registros_escolas, "dezembro")

        assert resumo["chave"].to_list() == ["EMEF Alfa", "EMEI Beta", "COMP Gama"]
        assert resumo["consumo_total"].to_list() == [150.0, 20.0, 10.0]

    def test_mes_exato(self, registros_escolas):
        resumo = agregar_por_escola(registros_escolas, "Novembro/2024")
        assert resumo["chave"].to_list() == ["EMEF Alfa", "EMEI Beta"]

    def test_mes_invalido_nao_retorna_escolas(self, registros_escolas):
        assert agregar_por_escola(registros_escolas, "xyz").height == 0

    def test_cadastros_sem_nulos(self, novo_registro):
        registros = registros_para_lazyframe([
            novo_registro("A", "Janeiro/2025", cadastro="1"),
            novo_registro("A", "Fevereiro/2025"),
            novo_registro("A", "Março/2025", cadastro="2"),
            novo_registro("A", "Abril/2025", cadastro="1"),
        ])

        resumo = agregar_por_escola(registros)

        assert resumo["cadastros"].to_list() == [["1", "2"]]


# =========================================================================
# ARREDONDAMENTO
# =========================================================================


class TestArredondamento:

    @pytest.mark.parametrize(
        "valor,casas,esperado",
        [
            (2.5, 0, 3.0),
            (-2.5, 0, -2.0),
            (0.25, 1, 0.3),
            (1.44, 1, 1.4),
            (150.26, 1, 150.3),
            (0.0, 2, 0.0),
            (1234.5, 0, 1235.0),
        ],
    )
    def test_meio_para_cima(self, valor, casas, esperado):
        assert arredondar(valor, casas) == esperado
        resultado = pl.select(expr_arredondar(pl.lit(valor), casas)).item()
        assert resultado == esperado

    def test_para_exibicao(self):
        registros = pl.LazyFrame({
            "nome_escola": ["A"],
            "consumo": [150.26],
            "valor_gasto": [300.5],
            "valor_servicos": [10.4],
        })
        resumo = arredondar_para_exibicao(agregar_por(registros))
        linha = resumo.row(0, named=True)

        assert linha["consumo_total"] == 150.3
        assert linha["consumo_medio"] == 150.3
        assert linha["valor_total"] == 301.0
        assert linha["valor_servicos_total"] == 10.0
        assert linha["valor_medio"] == 301.0
        assert linha["indice_eficiencia"] == 500.0
        assert linha["quantidade_registros"] == 1

    def test_para_exibicao_colunas_parciais(self):
        df = pl.DataFrame({"chave": ["A"], "valor_total": [10.5]})
        assert arredondar_para_exibicao(df)["valor_total"].to_list() == [11.0]


class TestExprValorNumerico:

    def test_texto_vale_zero(self):
        df = pl.DataFrame({"valor": ["12.5", "abc", None]})
        assert df.select(expr_valor_numerico("valor"))["valor"].to_list() == [12.5, 0.0, 0.0]

    def test_nao_finitos(self):
        df = pl.DataFrame({"valor": [math.inf, -math.inf, math.nan, 1.0]})
        assert df.select(expr_valor_numerico("valor"))["valor"].to_list() == [0.0, 0.0, 0.0, 1.0]


# =========================================================================
# CLASSIFICAÇÃO
# =========================================================================


@pytest.fixture
def resumo_empates() -> pl.DataFrame:
    return pl.DataFrame({
        "chave": ["a", "b", "c", "d"],
        "valor_total": [10.0, 20.0, 10.0, 20.0],
        "valor_servicos_total": [1.0, 2.0, 3.0, 4.0],
    })


class TestClassificar:

    def test_descendente_estavel(self, resumo_empates):
        assert classificar(resumo_empates, "valor_total")["chave"].to_list() == ["b", "d", "a", "c"]

    def test_ascendente_estavel(self, resumo_empates):
        resultado = classificar(resumo_empates, "valor_total", descendente=False)
        assert resultado["chave"].to_list() == ["a", "c", "b", "d"]

    def test_campo_desconhecido(self, resumo_empates):
        with pytest.raises(KeyError):
            classificar(resumo_empates, "nao_existe")

    def test_nulos_no_fim(self):
        df = pl.DataFrame({"chave": ["a", "b", "c"], "valor_total": [None, 5.0, 7.0]})
        assert classificar(df, "valor_total")["chave"].to_list() == ["c", "b", "a"]

    def test_primeiros(self, resumo_empates):
        assert primeiros(resumo_empates, "valor_total", 2)["chave"].to_list() == ["b", "d"]

    def test_ultimos(self, resumo_empates):
        assert ultimos(resumo_empates, "valor_total", 2)["chave"].to_list() == ["a", "c"]

    def test_n_maior_que_o_resumo(self, resumo_empates):
        assert primeiros(resumo_empates, "valor_total", 10).height == 4


class TestComparativoEscolas:

    def test_selecao_na_ordem_do_resumo(self, registros_escolas):
        resumo = agregar_por_escola(registros_escolas)

        resultado = comparativo_escolas(resumo, ["EMEI Beta", "EMEF Alfa"])

        assert resultado["chave"].to_list() == ["EMEF Alfa", "EMEI Beta"]
        assert resultado["valor_consumo"].to_list() == [2900.0, 1699.0]

    def test_maiores_valores_sem_selecao(self, registros_escolas):
        resumo = agregar_por_escola(registros_escolas)

        resultado = comparativo_escolas(resumo, n=2)

        assert resultado["chave"].to_list() == ["EMEF Alfa", "EMEI Beta"]

    def test_tamanho_padrao(self, registros_escolas):
        resumo = agregar_por_escola(registros_escolas)
        assert comparativo_escolas(resumo).height == 3
