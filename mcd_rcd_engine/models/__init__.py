"""
Sous-package `models` du moteur MCD / RCD.

- `records.py` : enregistrements persistés (dépenses, clients, transactions, audit),
- `mcd_model.py` : multiplicateur MCD et optimisation des poids plateformes,
- `rcd_model.py` : remise RCD, saisonnalité, segmentation et paliers de fidélité.

Aucun de ces modules n'accède à la base : ils reçoivent des agrégats.
"""
