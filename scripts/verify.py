"""
Sales Export Verification Script

Downloads the sales workbook from a running OrderDesk API and checks it
against the JSON sales report for the same window.
Run from project root: python scripts/verify.py --email ... --password ...
"""

import argparse
import io
import sys
from datetime import datetime

import httpx
import pandas as pd

API_BASE_URL = "http://localhost:8000"
EXCEL_COLUMNS = ["ID", "Customer", "Products", "Total Quantity", "Total", "Date"]


def verify_export(email: str, password: str, period: str) -> bool:
    """Compare the Excel export with the sales report."""

    print("=" * 60)
    print("🔍 SALES EXPORT VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"🎯 Target: {API_BASE_URL}")
    print("=" * 60)

    with httpx.Client(base_url=API_BASE_URL, timeout=30.0) as client:
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        if response.status_code != 200:
            print(f"\n❌ Login failed: {response.text[:100]}")
            return False

        report = client.get("/api/admin/reports/sales", params={"period": period})
        export = client.get("/api/admin/reports/sales/excel", params={"period": period})

    if report.status_code != 200 or export.status_code != 200:
        print(f"\n❌ Report request failed: {report.status_code} / {export.status_code}")
        return False

    kpis = report.json()["kpiData"]
    print(f"\n📄 File: {export.headers.get('content-disposition', '')}")

    try:
        df = pd.read_excel(io.BytesIO(export.content), engine="openpyxl", skiprows=4)
        print("\n✅ Workbook loaded successfully!")
    except ValueError as e:
        print(f"\n❌ Could not read workbook: {e}")
        return False

    ok = True

    # Statistics
    print("\n📊 STATISTICS:")
    print(f"   Rows: {len(df)}")
    print(f"   Report orders: {kpis['totalOrders']}")
    if len(df) != kpis["totalOrders"]:
        print("\n⚠️ Row count does not match the report")
        ok = False

    missing = [col for col in EXCEL_COLUMNS if col not in df.columns]
    if missing:
        print(f"\n⚠️ Missing Columns: {missing}")
        ok = False
    else:
        print("\n✅ All required columns present")

    if "ID" in df.columns:
        duplicates = df["ID"].duplicated().sum()
        if duplicates > 0:
            print(f"\n⚠️ {duplicates} duplicate order IDs found!")
            ok = False
        else:
            print("✅ No duplicate order IDs")

    # Revenue
    if "Total" in df.columns:
        total = round(float(df["Total"].sum()), 2)
        print("\n💰 REVENUE:")
        print(f"   Workbook: R$ {total:.2f}")
        print(f"   Report:   R$ {kpis['totalRevenue']:.2f}")
        if abs(total - kpis["totalRevenue"]) > 0.005:
            print("\n⚠️ Revenue does not match the report")
            ok = False

    print("\n📋 RECENT ORDERS:")
    print("-" * 60)
    if len(df) > 0:
        cols = [c for c in ["ID", "Customer", "Total", "Date"] if c in df.columns]
        print(df[cols].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if ok else "❌ VERIFICATION FOUND PROBLEMS")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Verify the sales Excel export")
    parser.add_argument("--email", required=True, help="ADMIN or MANAGER email")
    parser.add_argument("--password", required=True, help="Password")
    parser.add_argument("--period", default="monthly", help="Report grouping")
    args = parser.parse_args()

    sys.exit(0 if verify_export(args.email, args.password, args.period) else 1)
