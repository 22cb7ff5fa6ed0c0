# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Account utilities for OHADA FinSight.

This module contains helpers related to the chart of accounts (list of
accounts), which may come from a CSV file (e.g. data/accounts/syscohada.csv)
or from the storage collaborator (``fetch_accounts``).

Responsibilities:
- Load the list of accounts (account code + label) from CSV.
- Resolve the display label of any account code through its **closest known
  ancestor** by prefix, falling back to the generic OHADA labels below.

Classification never depends on labels: it is derived from the account
code only (see mapping.py).
"""

from collections.abc import Iterable, Mapping
from typing import Optional

import pandas as pd

from .models import Account

# Generic SYSCOHADA labels used when the tenant chart of accounts has no
# entry (and no ancestor) for a code.
DEFAULT_OHADA_LABELS: dict[str, str] = {
    "10": "Capital",
    "11": "Réserves",
    "12": "Report à nouveau",
    "13": "Résultat net de l'exercice",
    "14": "Subventions d'investissement",
    "15": "Provisions réglementées",
    "16": "Emprunts et dettes assimilées",
    "17": "Dettes de location-acquisition",
    "18": "Dettes liées à des participations",
    "19": "Provisions pour risques et charges",
    "20": "Charges immobilisées",
    "21": "Immobilisations incorporelles",
    "22": "Terrains",
    "23": "Bâtiments, installations techniques et agencements",
    "24": "Matériel",
    "25": "Avances et acomptes versés sur immobilisations",
    "26": "Titres de participation",
    "27": "Autres immobilisations financières",
    "3": "Stocks",
    "40": "Fournisseurs et comptes rattachés",
    "41": "Clients et comptes rattachés",
    "42": "Personnel",
    "43": "Organismes sociaux",
    "44": "État et collectivités publiques",
    "45": "Organismes internationaux",
    "46": "Associés et groupe",
    "47": "Débiteurs et créditeurs divers",
    "48": "Créances et dettes hors activités ordinaires",
    "49": "Dépréciations des comptes de tiers",
    "5": "Trésorerie",
    "52": "Banques",
    "57": "Caisse",
    "60": "Achats et variations de stocks",
    "61": "Transports",
    "62": "Services extérieurs A",
    "63": "Services extérieurs B",
    "64": "Impôts et taxes",
    "65": "Autres charges",
    "66": "Charges de personnel",
    "67": "Frais financiers et charges assimilées",
    "68": "Dotations aux amortissements",
    "69": "Dotations aux provisions",
    "70": "Ventes",
    "71": "Subventions d'exploitation",
    "72": "Production immobilisée",
    "73": "Variations des stocks de biens et services produits",
    "75": "Autres produits",
    "76": "Produits financiers",
    "77": "Revenus financiers et produits assimilés",
    "78": "Transferts de charges",
    "79": "Reprises de provisions",
    "81": "Valeurs comptables des cessions d'immobilisations",
    "82": "Produits des cessions d'immobilisations",
    "83": "Charges hors activités ordinaires",
    "84": "Produits hors activités ordinaires",
    "85": "Dotations hors activités ordinaires",
    "86": "Reprises hors activités ordinaires",
    "87": "Participation des travailleurs",
    "88": "Subventions d'équilibre",
    "89": "Impôts sur le résultat",
}


def load_list_of_accounts(path: str) -> pd.DataFrame:
    """Load the chart of accounts (list of accounts) from CSV.

    Expected structure
    ------------------
    The CSV must contain at least:
        - one column with the account code:
            'account_number', 'account', 'code' or 'numero_compte'
        - one column with the account label:
            'name', 'label', 'description' or 'libelle_compte'

    Column names are matched case-insensitively and trimmed.

    Args:
        path: Path to the CSV file containing the chart of accounts.

    Returns:
        A DataFrame with exactly two columns:
            - 'code': account code as string
            - 'label': account label as string

    Raises:
        ValueError: if no suitable account code or label column can be found.
    """
    df = pd.read_csv(path, dtype=str)
    col_map = {str(c).strip().lower(): c for c in df.columns}

    code_col = None
    for cand in ("account_number", "account", "code", "numero_compte"):
        if cand in col_map:
            code_col = col_map[cand]
            break
    if code_col is None:
        raise ValueError(
            "Could not find an account code column in list_of_accounts file. "
            "Expected one of: 'account_number', 'account', 'code', "
            "'numero_compte'."
        )

    name_col = None
    for cand in ("name", "label", "description", "libelle_compte"):
        if cand in col_map:
            name_col = col_map[cand]
            break
    if name_col is None:
        raise ValueError(
            "Could not find an account name/label column in list_of_accounts "
            "file. Expected one of: 'name', 'label', 'description', "
            "'libelle_compte'."
        )

    out = df[[code_col, name_col]].copy()
    out.columns = ["code", "label"]
    out["code"] = out["code"].astype(str).str.strip()
    out["label"] = out["label"].fillna("").astype(str).str.strip()
    return out


def accounts_from_frame(df: pd.DataFrame) -> list[Account]:
    """Convert the frame returned by load_list_of_accounts into Accounts."""
    return [Account(code=str(r.code), label=str(r.label)) for r in df.itertuples()]


def build_label_index(accounts: Iterable[Account]) -> dict[str, str]:
    """Return ``{code: label}`` for a list of accounts (last one wins)."""
    return {str(a.code).strip(): a.label for a in accounts}


def resolve_to_known_account(code: str, known_codes: Iterable[str]) -> Optional[str]:
    """Return the closest known ancestor of a given account code.

    The matching rule is based on prefix containment:
    - '411001' → '4110' if that prefix exists in the list
    - '4115'   → '411'  if '411' exists
    - '601010' → '60'   if '60' exists
    - '999999' → None   if no prefix matches

    Args:
        code: Raw account code.
        known_codes: Known account codes (a set is recommended).

    Returns:
        The most specific known prefix of the code, or None if no prefix exists.
    """
    known = known_codes if isinstance(known_codes, (set, frozenset, dict)) else set(
        known_codes
    )
    s = str(code).strip()
    for i in range(len(s), 0, -1):
        prefix = s[:i]
        if prefix in known:
            return prefix
    return None


def resolve_label(code: str, labels: Optional[Mapping[str, str]] = None) -> str:
    """Return the display label of an account code.

    Resolution order: the tenant chart of accounts (closest known ancestor),
    then the generic OHADA labels, then the code itself.
    """
    for index in (labels or {}, DEFAULT_OHADA_LABELS):
        known = resolve_to_known_account(code, index)
        if known is not None and index[known]:
            return index[known]
    return str(code)
