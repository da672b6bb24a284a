"""
Fila de escolas pendentes no lançamento mensal.

Durante o lançamento dos dados de um mês, as escolas puladas ficam numa
lista de pendências (índices na lista de escolas), por mês de referência.
A persistência é um colaborador injetado com três operações (obter, definir,
limpar), o que permite trocar o armazenamento em arquivo por outro
mecanismo ou por um dublê de teste.
"""

import copy
import json
import logging
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Optional, Protocol, Union

from .models.registro_consumo import TipoUtilidade

logger = logging.getLogger(__name__)


class ArmazenamentoPendencias(Protocol):
    """Armazenamento chave/valor das pendências."""

    def obter(self, chave: str) -> Optional[Any]:
        ...

    def definir(self, chave: str, valor: Any) -> None:
        ...

    def limpar(self, chave: str) -> None:
        ...


class PendenciasEmMemoria:
    """Armazenamento em memória (testes, sessões sem persistência)."""

    def __init__(self):
        self._dados: dict[str, Any] = {}

    def obter(self, chave: str) -> Optional[Any]:
        return copy.deepcopy(self._dados.get(chave))

    def definir(self, chave: str, valor: Any) -> None:
        self._dados[chave] = copy.deepcopy(valor)

    def limpar(self, chave: str) -> None:
        self._dados.pop(chave, None)


class PendenciasArquivoJson:
    """
    Armazenamento num arquivo JSON (um objeto chave -> valor).

    Um arquivo ilegível é tratado como vazio, com um aviso no log.
    """

    def __init__(self, caminho: Union[str, Path]):
        self.caminho = Path(caminho)

    def _ler(self) -> dict[str, Any]:
        if not self.caminho.exists():
            return {}
        try:
            with open(self.caminho, encoding="utf-8") as f:
                dados = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Arquivo de pendências ilegível ({self.caminho}): {e}")
            return {}
        if not isinstance(dados, dict):
            logger.warning(f"Arquivo de pendências com formato inesperado: {self.caminho}")
            return {}
        return dados

    def _gravar(self, dados: dict[str, Any]) -> None:
        self.caminho.parent.mkdir(parents=True, exist_ok=True)
        # Grava num temporário do mesmo diretório e substitui o arquivo de uma vez
        with NamedTemporaryFile(
            "w", encoding="utf-8", dir=self.caminho.parent, suffix=".tmp", delete=False
        ) as f:
            temporario = Path(f.name)
            try:
                json.dump(dados, f, ensure_ascii=False, indent=2)
            except (OSError, TypeError, ValueError):
                f.close()
                temporario.unlink(missing_ok=True)
                raise
        temporario.replace(self.caminho)

    def obter(self, chave: str) -> Optional[Any]:
        return self._ler().get(chave)

    def definir(self, chave: str, valor: Any) -> None:
        dados = self._ler()
        dados[chave] = valor
        self._gravar(dados)

    def limpar(self, chave: str) -> None:
        dados = self._ler()
        if chave in dados:
            del dados[chave]
            self._gravar(dados)


def _indices_validos(indices: Any) -> bool:
    return isinstance(indices, list) and all(
        isinstance(indice, int) and not isinstance(indice, bool) for indice in indices
    )


class FilaPendencias:
    """
    Pendências de um tipo de utilidade, por mês de referência.

    Example:
        >>> fila = FilaPendencias(PendenciasEmMemoria(), TipoUtilidade.AGUA)
        >>> fila.registrar("Janeiro/2025", [3, 1, 3])
        >>> fila.carregar("Janeiro/2025")
        [1, 3]
    """

    def __init__(self, armazenamento: ArmazenamentoPendencias, tipo: TipoUtilidade):
        self.armazenamento = armazenamento
        self.tipo = TipoUtilidade(tipo)

    @property
    def chave(self) -> str:
        return f"{self.tipo.value}_escolas_pendentes"

    def pendencias(self) -> dict[str, list[int]]:
        """
        Todas as pendências, por mês.

        Conteúdo armazenado fora do formato {mês: [índices]} é ignorado com
        um aviso no log: um valor que não é dicionário vale {}, e meses cujo
        valor não é uma lista de inteiros são descartados.
        """
        dados = self.armazenamento.obter(self.chave)
        if dados is None:
            return {}
        if not isinstance(dados, dict):
            logger.warning(f"Pendências de {self.tipo.value} com formato inesperado, ignoradas")
            return {}

        pendencias = {}
        for mes, indices in dados.items():
            if not _indices_validos(indices):
                logger.warning(f"Pendências de {self.tipo.value} em {mes!r} com formato inesperado: {indices!r}")
                continue
            if indices:
                pendencias[mes] = list(indices)
        return pendencias

    def _salvar(self, dados: dict[str, list[int]]) -> None:
        if dados:
            self.armazenamento.definir(self.chave, dados)
        else:
            self.armazenamento.limpar(self.chave)

    def carregar(self, mes: str) -> list[int]:
        """Índices das escolas pendentes no mês (lista vazia se nenhuma)."""
        return self.pendencias().get(mes, [])

    def registrar(self, mes: str, indices: list[int]) -> None:
        """Substitui as pendências do mês. Uma lista vazia remove o mês."""
        dados = self.pendencias()
        indices = sorted(set(indices))
        if indices:
            dados[mes] = indices
        else:
            dados.pop(mes, None)
        self._salvar(dados)

    def adicionar(self, mes: str, indice: int) -> None:
        """Marca uma escola como pendente no mês."""
        self.registrar(mes, self.carregar(mes) + [indice])

    def remover(self, mes: str, indice: int) -> None:
        """Retira uma escola das pendências do mês (escola preenchida)."""
        self.registrar(mes, [i for i in self.carregar(mes) if i != indice])

    def possui_pendencias(self, mes: Optional[str] = None) -> bool:
        if mes is None:
            return bool(self.pendencias())
        return bool(self.carregar(mes))

    def limpar(self) -> None:
        self.armazenamento.limpar(self.chave)

    def escolas_preenchidas(self, mes: str, total: int) -> list[int]:
        """Índices 0..total-1 que não estão pendentes no mês."""
        pendentes = set(self.carregar(mes))
        return [indice for indice in range(total) if indice not in pendentes]
