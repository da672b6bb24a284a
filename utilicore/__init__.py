"""
utilicore - agregações do painel de utilidades municipais.

Água, energia, telefonia fixa e móvel: totais por escola, resumos mensais e
sazonais, indicadores de eficiência e formatação em padrão brasileiro.
"""

__version__ = "0.1.0"
