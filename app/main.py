import sys
import os
import asyncio
import time
import uuid
import streamlit as st

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.config import settings
from storefront.logging_config import setup_logging
from storefront.api import BackendClient
from storefront.cart import format_price
from storefront.delivery import DeliveryFeeCalculator, load_stores, nearest_store
from storefront.domain import OTHER_NEIGHBORHOOD, CustomerInfo, PaymentMethod, Position
from storefront.errors import NetworkError, PermissionDenied
from storefront.ledger import AckLedger
from storefront.service import CartStore, OrderSubmissionService
from storefront.storage import SqliteStore, StorefrontState
from Payment_Service.orchestrator import PaymentOrchestrator, PaymentState
from Payment_Service.reconcile import PaymentReconciler, returned_after_idle

NEIGHBORHOODS = ["Centro", "Efapi", "Palmital", "Passo dos Fortes", OTHER_NEIGHBORHOOD]


def run(coro):
    """Синхронная обёртка: каждый перезапуск скрипта streamlit - отдельный event loop"""
    return asyncio.run(coro)


def price(cents: int) -> str:
    return format_price(cents, settings.currency_symbol)


# ============ Ресурсы ============
@st.cache_resource
def get_kv():
    setup_logging()
    return SqliteStore(settings.db_path)


@st.cache_resource
def get_api():
    return BackendClient(settings.api_url, timeout=settings.request_timeout)


@st.cache_data
def get_stores():
    return load_stores(settings.stores_path)


@st.cache_data(ttl=300)
def get_delivery_settings():
    try:
        return run(get_api().get_settings())
    except NetworkError:
        return 0.0, 0


@st.cache_data(ttl=60)
def get_products(store: str):
    try:
        return run(get_api().list_products(store))
    except NetworkError:
        return ()


async def locate_device() -> Position:
    pos = st.session_state.get("position")
    if pos is None:
        raise PermissionDenied()
    return pos


def client_id() -> str:
    """Id браузера в URL (?cid=...): корзина и заказ в SQLite хранятся отдельно для каждого клиента"""
    cid = st.query_params.get("cid")
    if not cid:
        cid = st.session_state.get("cid") or uuid.uuid4().hex
        st.query_params["cid"] = cid
    st.session_state.cid = cid
    return cid


def build_engine(cid: str) -> PaymentOrchestrator:
    api = get_api()
    state = StorefrontState(get_kv(), namespace=cid)
    cart_store = CartStore(state)
    ledger = AckLedger(state.kv, ttl_seconds=settings.ack_ttl_seconds)
    reconciler = PaymentReconciler(
        api,
        state,
        ledger,
        cart_store,
        poll_interval=settings.poll_interval,
        max_attempts=settings.poll_max_attempts,
    )
    delivery = DeliveryFeeCalculator(locate_device, {s.name: s for s in get_stores()})
    _, min_fee = get_delivery_settings()
    return PaymentOrchestrator(
        api,
        cart_store,
        delivery,
        OrderSubmissionService(api, state),
        reconciler,
        navigate=lambda url: st.session_state.update(redirect_url=url),
        minimum_fee=min_fee,
        auto_poll=False,  # опрос делает st.fragment(run_every=...)
    )


# ============ Инициализация ============
st.set_page_config(page_title="Sorveteria", page_icon="🍦", layout="wide")

if "engine" not in st.session_state:
    st.session_state.engine = build_engine(client_id())

engine: PaymentOrchestrator = st.session_state.engine
rate, min_fee = get_delivery_settings()

# возврат с провайдера (?orderId=..&paid=1) - один раз за сессию
if not st.session_state.get("resumed"):
    st.session_state.resumed = True
    run(engine.resume(dict(st.query_params)))
elif returned_after_idle(st.session_state.get("last_rerun_at"), time.time(), settings.poll_interval):
    run(engine.on_refocus())
st.session_state.last_rerun_at = time.time()


def recalc_fee() -> None:
    result = run(engine.delivery.recalculate(rate, engine.cart_store.store))
    if result.is_left:
        st.warning(result.error.message)


# ============ SIDEBAR ============
with st.sidebar:
    st.header("📍 Unidade")
    stores = get_stores()

    lat = st.number_input("Latitude", value=None, format="%.6f", key="geo_lat")
    lng = st.number_input("Longitude", value=None, format="%.6f", key="geo_lng")
    if lat is not None and lng is not None:
        st.session_state.position = Position(lat, lng)
        if engine.cart_store.store is None:
            closest = nearest_store(st.session_state.position, stores)
            if closest.is_some():
                engine.cart_store.switch_store(closest.get_or_else(None).name)

    names = [s.name for s in stores]
    current = engine.cart_store.store
    chosen = st.selectbox(
        "Loja", names, index=names.index(current) if current in names else 0, key="store_select"
    )
    if chosen != current:
        engine.cart_store.switch_store(chosen)
        engine.delivery.invalidate()

    status = run(get_api().store_status(chosen))
    if not status.is_open:
        st.error(f"🔒 {status.message or 'Loja fechada'}")
        if status.next_opening:
            st.caption(f"Abre às {status.next_opening}")

    if st.button("🚚 Calcular entrega", use_container_width=True):
        recalc_fee()

    fee = engine.current_fee()
    st.metric("Entrega", price(fee) if fee is not None else "—")

    st.divider()
    page = st.radio("Seção", ["🏪 Produtos", "🛒 Carrinho", "🧾 Meu Pedido"], label_visibility="collapsed")

view = engine.view
if view.get("notice"):
    notice = view["notice"]
    {"warning": st.warning, "error": st.error}.get(notice["level"], st.info)(notice["message"])


# ============ Подтверждение ============
if view.get("confirmation") and engine.state is PaymentState.CONFIRMED:
    if view["confirmation"] == "paid":
        st.success(f"✔️ Pedido Confirmado! Número do pedido: **#{engine.order_id}**")
    else:
        st.info(f"🛵 Pedido #{engine.order_id} recebido. Pague ao entregador na entrega.")
    if st.button("Voltar para Loja", type="primary"):
        engine.dismiss_confirmation()
        st.query_params.clear()
        st.query_params["cid"] = st.session_state.cid
        st.rerun()


# ============ Опрос статуса ============
@st.fragment(run_every=settings.poll_interval)
def poll_payment():
    if engine.state is not PaymentState.RECONCILING:
        return
    st.caption(f"⏳ Aguardando confirmação do pagamento do pedido #{engine.order_id}…")
    if st.session_state.get("redirect_url"):
        st.link_button("Ir para Pagamento", st.session_state.redirect_url)
    if st.button("Cancelar", key="cancel_payment"):
        run(engine.cancel())
        st.rerun()
    if run(engine.reconciler.poll_once()):
        st.rerun()


poll_payment()


# ============ PAGE: ПРОДУКТЫ ============
if page == "🏪 Produtos":
    st.header("🏪 Produtos")
    store = engine.cart_store.store
    products = get_products(store) if store else ()
    if not products:
        st.info("Nenhum produto disponível para esta unidade.")
    for p in products[:60]:
        cols = st.columns([5, 2, 2, 2])
        with cols[0]:
            st.markdown(f"**{p.name}**")
            st.caption(p.category_name + (f" / {p.subcategory_name}" if p.subcategory_name else ""))
        with cols[1]:
            st.write(price(p.price))
        with cols[2]:
            remaining = max(p.stock - engine.cart_store.quantity_of(p.id), 0)
            qty = st.number_input(
                "Qtd", min_value=1, value=1, key=f"qty_{p.id}", label_visibility="collapsed"
            )
            st.caption(f"Restam {remaining}")
        with cols[3]:
            if st.button("➕", key=f"add_{p.id}"):
                result = engine.cart_store.add(p, int(qty))
                if result.is_left:
                    st.warning(result.error.message)
                else:
                    st.success(f"✅ {p.name}")


# ============ PAGE: КОРЗИНА И ОФОРМЛЕНИЕ ============
elif page == "🛒 Carrinho":
    st.header("🛒 Carrinho")
    cart = engine.cart_store.cart

    if not cart.lines:
        st.info("Seu carrinho está vazio!")
    for line in cart.lines:
        p = line.product
        cols = st.columns([5, 1, 1, 1, 2, 1])
        cols[0].write(f"**{p.name}** · {price(p.price)} x {line.quantity}")
        if cols[1].button("➖", key=f"dec_{p.id}"):
            engine.cart_store.update_quantity(p.id, -1)
            st.rerun()
        cols[2].write(line.quantity)
        if cols[3].button("➕", key=f"inc_{p.id}"):
            engine.cart_store.update_quantity(p.id, +1)
            st.rerun()
        cols[4].write(price(p.price * line.quantity))
        if cols[5].button("🗑️", key=f"del_{p.id}"):
            engine.cart_store.remove(p.id)
            st.rerun()

    st.divider()
    with st.form("checkout"):
        name = st.text_input("Nome completo")
        neighborhood = st.selectbox("Bairro", [""] + NEIGHBORHOODS)
        custom = st.text_input("Outro bairro")
        street = st.text_input("Rua")
        number = st.text_input("Número")
        complement = st.text_input("Complemento")
        phone = st.text_input("WhatsApp com DDD")
        method = st.radio(
            "Pagamento",
            [PaymentMethod.ONLINE, PaymentMethod.CASH],
            format_func=lambda m: "💳 Online" if m is PaymentMethod.ONLINE else "💵 Dinheiro na entrega",
        )

        fee = engine.current_fee()
        st.markdown(f"🚚 Entrega: **{price(fee) if fee is not None else '—'}**")
        st.markdown(f"### 💰 Total: **{price(engine.total())}**")

        submitted = st.form_submit_button("Ir para Pagamento", type="primary", disabled=engine.busy)

    if submitted:
        customer = CustomerInfo(
            name=name,
            neighborhood=neighborhood,
            custom_neighborhood=custom,
            street=street,
            number=number,
            complement=complement,
            phone=phone,
        )
        with st.spinner("Preparando o pagamento…"):
            if engine.current_fee() is None:
                recalc_fee()
            run(engine.pay(customer, method))
        st.rerun()


# ============ PAGE: МОЙ ЗАКАЗ ============
elif page == "🧾 Meu Pedido":
    st.header("🧾 Meus Pedidos")
    raw = st.text_input("Número do pedido", key="lookup_id")
    if st.button("🔍 Buscar Pedido") and raw.strip().isdigit():
        try:
            found = run(get_api().find_order(int(raw)))
        except NetworkError as e:
            st.error(e.message)
        else:
            if found.is_none():
                st.warning("Pedido não encontrado.")
            else:
                o = found.get_or_else(None)
                st.markdown(f"📦 **Pedido #{o.id}** · {o.store}")
                st.write(f"Cliente: {o.name} · {o.phone}")
                st.write(f"Status: **{o.status.value}** · Total: {price(o.total)}")
