"""
Analytics business pour le tableau de bord.

Ce module construit des DataFrames pandas à partir des lignes du
repository et produit :
- une vue d'ensemble (revenu, clients, marketing) sur une période,
- l'évolution du revenu par jour / semaine / mois,
- la répartition des clients par segment et par palier de fidélité.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd  # type: ignore
import pytz

from .interfaces.data_access import PricingRepository


PERIOD_DAYS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
}

TREND_FREQUENCIES = {
    "day": "D",
    "week": "W",
    "month": "M",
}


def get_period_start(period: str, now: datetime) -> datetime:
    """Début de période : 7d / 30d / 90d glissants, ou 1er janvier (ytd)."""
    if period == "ytd":
        return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return now - timedelta(days=PERIOD_DAYS.get(period, 30))


def _transactions_frame(repository: PricingRepository, business_id: str, start: datetime) -> pd.DataFrame:
    transactions = repository.list_transactions(business_id, start=start)
    return pd.DataFrame(
        [{"timestamp": t.timestamp, "amount": t.amount} for t in transactions],
        columns=["timestamp", "amount"],
    )


def get_analytics_overview(
    repository: PricingRepository,
    business_id: str,
    period: str = "30d",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Vue d'ensemble sur la période :
    - revenu total, nombre de transactions, panier moyen,
    - clients (total, nouveaux, taux de croissance en %),
    - dépense marketing, nombre d'enregistrements, ROI en %.
    """
    now = now or datetime.now(pytz.utc)
    start = get_period_start(period, now)

    tx_df = _transactions_frame(repository, business_id, start)
    total_revenue = float(tx_df["amount"].sum()) if not tx_df.empty else 0.0
    transaction_count = int(len(tx_df))
    average_order_value = float(tx_df["amount"].mean()) if not tx_df.empty else 0.0

    customers = repository.list_customers(business_id)
    customers_df = pd.DataFrame(
        [{"created_at": c.created_at} for c in customers],
        columns=["created_at"],
    )
    total_customers = int(len(customers_df))
    new_customers = int((customers_df["created_at"] >= start).sum()) if total_customers else 0

    spend_records = repository.list_marketing_spend(business_id, start=start)
    spend_df = pd.DataFrame([{"amount": r.amount} for r in spend_records], columns=["amount"])
    total_spend = float(spend_df["amount"].sum()) if not spend_df.empty else 0.0

    roi = (total_revenue - total_spend) / total_spend * 100 if total_spend > 0 else 0.0

    return {
        "period": period,
        "date_range": {"start": start.isoformat(), "end": now.isoformat()},
        "revenue": {
            "total": round(total_revenue, 2),
            "transactions": transaction_count,
            "average_order_value": round(average_order_value, 2),
        },
        "customers": {
            "total": total_customers,
            "new": new_customers,
            "growth_rate": new_customers / total_customers * 100 if total_customers > 0 else 0.0,
        },
        "marketing": {
            "total_spend": round(total_spend, 2),
            "campaigns": int(len(spend_df)),
            "roi": round(roi, 2),
        },
        "calculated_at": now.isoformat(),
    }


def get_revenue_trends(
    repository: PricingRepository,
    business_id: str,
    group_by: str = "day",
    days: int = 30,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Revenu et nombre de transactions par jour, semaine ou mois."""
    now = now or datetime.now(pytz.utc)
    frequency = TREND_FREQUENCIES.get(group_by, "D")
    start = now - timedelta(days=int(days))

    df = _transactions_frame(repository, business_id, start)
    trends: List[Dict[str, Any]] = []

    if not df.empty:
        timestamps = pd.to_datetime(df["timestamp"], utc=True)
        df["timestamp"] = timestamps
        df["period"] = timestamps.dt.tz_localize(None).dt.to_period(frequency)

        grouped = (
            df.groupby("period")
            .agg(
                total_revenue=("amount", "sum"),
                transaction_count=("amount", "count"),
                date=("timestamp", "min"),
            )
            .reset_index()
            .sort_values("period")
        )
        for row in grouped.itertuples(index=False):
            trends.append({
                "period": str(row.period),
                "total_revenue": round(float(row.total_revenue), 2),
                "transaction_count": int(row.transaction_count),
                "date": row.date.isoformat(),
            })

    return {
        "period": f"{days} days",
        "group_by": group_by if group_by in TREND_FREQUENCIES else "day",
        "trends": trends,
        "total_revenue": round(sum(t["total_revenue"] for t in trends), 2),
        "total_transactions": sum(t["transaction_count"] for t in trends),
    }


def _summarize(df: pd.DataFrame, column: str, label: str) -> List[Dict[str, Any]]:
    if df.empty:
        return []

    grouped = (
        df.groupby(column)
        .agg(count=("spend", "count"), total_spend=("spend", "sum"), average_spend=("spend", "mean"))
        .reset_index()
        .sort_values("count", ascending=False)
    )
    return [
        {
            label: row[column] or "unknown",
            "count": int(row["count"]),
            "total_spend": round(float(row["total_spend"]), 2),
            "average_spend": round(float(row["average_spend"]), 2),
        }
        for _, row in grouped.iterrows()
    ]


def get_customer_segments(repository: PricingRepository, business_id: str) -> Dict[str, Any]:
    """Répartition des clients par segment et par palier de fidélité."""
    customers = repository.list_customers(business_id)
    df = pd.DataFrame(
        [
            {
                "segment": c.customer_segment.value,
                "tier": c.loyalty_tier.value,
                "spend": c.total_spend_365,
            }
            for c in customers
        ],
        columns=["segment", "tier", "spend"],
    )

    return {
        "segments": _summarize(df, "segment", "segment"),
        "loyalty_tiers": _summarize(df, "tier", "tier"),
        "total_customers": int(len(df)),
    }
