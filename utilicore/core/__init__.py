"""
Núcleo de cálculo do utilicore: modelos, classificação temporal,
agregações e formatação.
"""
