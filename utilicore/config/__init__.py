"""
Configuração do utilicore.

Os parâmetros dos relatórios ficam em `parametros.yaml` e a tabela das
estações astronômicas em `estacoes.csv`, ambos neste diretório. Um arquivo
alternativo pode ser indicado pela variável de ambiente UTILICORE_PARAMETROS.
"""

import copy
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml

CONFIG_DIR = Path(__file__).parent
ARQUIVO_PARAMETROS = CONFIG_DIR / "parametros.yaml"
VARIAVEL_AMBIENTE = "UTILICORE_PARAMETROS"

PARAMETROS_PADRAO: dict[str, Any] = {
    "alertas": {"limiar_percentual": 20.0},
    "vencimentos": {"janela_dias": 7, "limite": 10},
    "rankings": {"top_escolas": 15, "comparativo": 5, "eficiencia": 3},
    "tipos_escola": ["EMEF", "EMEI", "EMEIF", "COMP", "PAR"],
    "estacoes": {"arquivo": "estacoes.csv"},
    "duckdb": {"caminho": "utilicore.duckdb"},
}


def carregar_parametros(caminho: Optional[Union[str, Path]] = None) -> dict[str, Any]:
    """
    Carrega os parâmetros YAML, completados pelos valores padrão.

    Cada seção do arquivo substitui apenas as chaves que define; as demais
    mantêm o valor de PARAMETROS_PADRAO.

    Args:
        caminho: Arquivo YAML alternativo. Sem ele, usa UTILICORE_PARAMETROS
            ou o parametros.yaml embarcado.

    Returns:
        Dicionário de parâmetros

    Example:
        >>> carregar_parametros()["alertas"]["limiar_percentual"]
        20.0
    """
    if caminho is None:
        caminho = os.environ.get(VARIAVEL_AMBIENTE) or ARQUIVO_PARAMETROS

    with open(caminho, encoding="utf-8") as f:
        dados = yaml.safe_load(f) or {}

    parametros = copy.deepcopy(PARAMETROS_PADRAO)
    for secao, valor in dados.items():
        if isinstance(valor, dict) and isinstance(parametros.get(secao), dict):
            parametros[secao].update(valor)
        else:
            parametros[secao] = valor
    return parametros


def caminho_estacoes(parametros: Optional[dict[str, Any]] = None) -> Path:
    """Resolve o caminho da tabela de estações (relativo a CONFIG_DIR)."""
    parametros = parametros or carregar_parametros()
    return CONFIG_DIR / parametros["estacoes"]["arquivo"]


__all__ = [
    "CONFIG_DIR",
    "ARQUIVO_PARAMETROS",
    "VARIAVEL_AMBIENTE",
    "PARAMETROS_PADRAO",
    "carregar_parametros",
    "caminho_estacoes",
]
