"""
Exceptions du moteur de pricing.
"""


class PricingValidationError(ValueError):
    """
    Erreur de validation d'une entrée (montant, email, plateforme, prix de base).

    Levée avant toute écriture en base ; le message est renvoyé tel quel
    à l'appelant.
    """
