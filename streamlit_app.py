import os
import streamlit as st
import requests
import pandas as pd
import altair as alt

st.set_page_config(page_title="Crypto Tracker (dev)", layout="wide")

st.title("📈 Crypto Tracker — Development UI (Streamlit)")

# -------------------- BACKEND CONFIG -------------------- #
DEFAULT_BACKEND = os.getenv("BACKEND_URL", "http://localhost:8000")
backend_url = st.sidebar.text_input("Backend base URL", value=DEFAULT_BACKEND)

QUICK_SYMBOLS = ["btc", "eth", "sol", "xrp", "ada", "doge", "dot", "bnb", "usdt", "usdc"]


def _error_message(resp):
    try:
        body = resp.json()
        return f"{body.get('error')}: {body.get('message')}"
    except ValueError:
        return resp.text


# -------------------- QUICK ACTIONS -------------------- #
st.sidebar.markdown("---")
st.sidebar.markdown("### Current price")

symbol = st.sidebar.selectbox("Symbol", QUICK_SYMBOLS)
if st.sidebar.button("Fetch current price"):
    try:
        resp = requests.get(f"{backend_url}/price/{symbol}", timeout=15)
        if resp.status_code != 200:
            st.sidebar.error(f"❌ {_error_message(resp)}")
        else:
            snap = resp.json()
            usd = snap["current_price"]["usd"]
            st.sidebar.metric(
                snap["name"],
                f"${usd:,.2f}",
                f"{snap.get('price_change_24h') or 0:.2f}%",
            )
            st.sidebar.json(snap)
    except Exception as e:
        st.sidebar.error(f"❌ Failed to fetch price: {e}")

# -------------------- PRICE HISTORY -------------------- #
st.markdown("---")
st.header("💹 Price History")

col1, col2 = st.columns([3, 1])

with col1:
    s = st.selectbox("Choose symbol to plot", QUICK_SYMBOLS, index=0)
    range_days = st.slider("Days of history", 1, 90, 7)
    show_ma = st.checkbox("Show moving average (24 points)", value=True)

    try:
        resp = requests.get(f"{backend_url}/history/{s}/{range_days}", timeout=20)
        resp.raise_for_status()
        payload = resp.json()
        data = payload.get("data", [])

        if data:
            df = pd.DataFrame(data)
            df["timestamp"] = pd.to_datetime(df["timestamp"], unit="ms", utc=True)
            df = df.sort_values("timestamp")
            df["MA"] = df["price"].rolling(window=24, min_periods=1).mean()

            y_min = float(df["price"].min() * 0.98)
            y_max = float(df["price"].max() * 1.02)
            scale = alt.Scale(domain=[y_min, y_max])

            charts = [
                alt.Chart(df)
                .mark_line(color="#1f77b4")
                .encode(
                    x="timestamp:T",
                    y=alt.Y("price:Q", title="Price (USD)", scale=scale),
                    tooltip=["timestamp:T", "price:Q"],
                )
            ]
            if show_ma:
                charts.append(
                    alt.Chart(df)
                    .mark_line(color="orange")
                    .encode(
                        x="timestamp:T",
                        y=alt.Y("MA:Q", title="Price (USD)", scale=scale),
                        tooltip=["timestamp:T", "MA:Q"],
                    )
                )
            st.altair_chart(alt.layer(*charts), use_container_width=True)
            st.caption(f"{len(df)} points")
            st.dataframe(df.tail(20))
        else:
            st.info("No history available for this range.")
    except Exception as e:
        st.error(f"❌ Error loading history: {e}")

# -------------------- FAVORITES -------------------- #
with col2:
    st.subheader("⭐ Favorites")
    fav_symbol = st.text_input("Symbol", value="btc")
    fav_name = st.text_input("Name", value="Bitcoin")
    if st.button("Add favorite"):
        try:
            resp = requests.post(
                f"{backend_url}/favorites",
                json={"symbol": fav_symbol, "name": fav_name},
                timeout=10,
            )
            if resp.status_code == 201:
                st.success(f"✅ Added {fav_symbol}")
            else:
                st.warning(_error_message(resp))
        except Exception as e:
            st.error(f"❌ Failed to add favorite: {e}")

    try:
        resp = requests.get(f"{backend_url}/favorites", timeout=10)
        resp.raise_for_status()
        favorites = resp.json()
        for fav in favorites:
            c1, c2 = st.columns([3, 1])
            c1.write(f"**{fav['symbol'].upper()}** — {fav['name']}")
            if c2.button("✖", key=f"rm-{fav['symbol']}"):
                requests.delete(f"{backend_url}/favorites/{fav['symbol']}", timeout=10)
                st.rerun()
        if not favorites:
            st.caption("No favorites yet.")
    except Exception as e:
        st.error(f"❌ Failed to load favorites: {e}")

# -------------------- MARKET EXPLORER -------------------- #
st.markdown("---")
st.header("🏦 Market Explorer")

m1, m2 = st.columns(2)
page = m1.number_input("Page", min_value=1, value=1, step=1)
per_page = m2.number_input("Per page", min_value=1, max_value=250, value=50, step=10)

try:
    resp = requests.get(
        f"{backend_url}/cryptocurrencies",
        params={"page": int(page), "perPage": int(per_page)},
        timeout=15,
    )
    if resp.status_code != 200:
        st.error(f"❌ {_error_message(resp)}")
    else:
        body = resp.json()
        rows = body.get("data", [])
        if rows:
            cols = [
                "market_cap_rank",
                "symbol",
                "name",
                "current_price",
                "market_cap",
                "price_change_percentage_24h",
            ]
            df = pd.DataFrame(rows)
            st.dataframe(df[[c for c in cols if c in df.columns]])
        st.caption(f"Showing {body['meta']['count']} coins")
except Exception as e:
    st.error(f"❌ Failed to load market list: {e}")

# -------------------- FOOTER -------------------- #
st.markdown("---")
st.caption(
    "⚠️ Dev UI — add authentication and a production-grade frontend for real deployment."
)
