"""
Streamlit Host Shell for Tijarati

The native side of the app that is not the ledger UI itself:
the lock screen, security settings, backup / restore and the assistant key.

DESIGN PRINCIPLES:
1. Nothing is shown until the app is unlocked
2. Destructive actions (import, clear) need an explicit confirmation
3. Every action goes through the bridge, exactly like the web bundle's
   requests, so the same lock rules apply
4. Clear error messages in simple language
"""

import asyncio
import json
import threading
from datetime import datetime

import streamlit as st

from tijarati.config import validate_all_settings
from tijarati.models.bridge import RequestKind, RequestEnvelope
from tijarati.orchestrator import TijaratiHost, create_host


# Page configuration
st.set_page_config(
    page_title="Tijarati",
    page_icon="🔐",
    layout="centered",
    initial_sidebar_state="expanded",
)

# Custom CSS for the lock screen
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .lock-box {
        padding: 30px;
        background-color: #f1f5f9;
        border-radius: 16px;
        text-align: center;
        margin: 20px 0;
    }
    .lock-title {
        font-size: 1.8em;
        font-weight: bold;
        color: #0f172a;
    }
</style>
""", unsafe_allow_html=True)


class HostRuntime:
    """
    Keeps one event loop alive in a background thread.

    Reminder timers belong to the loop they were scheduled on, so the host
    cannot run on a fresh loop per Streamlit rerun.
    """

    def __init__(self):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self.loop.run_forever, daemon=True)
        self._thread.start()
        self.host: TijaratiHost = self.run(create_host())

    def run(self, coro):
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result()

    def request(self, kind: RequestKind, payload: dict | None = None):
        """Send one bridge request and return its result."""
        envelope = RequestEnvelope(
            id=f"ui-{datetime.now().timestamp()}",
            type=kind.value,
            payload=payload or {},
        )
        return self.run(self.host.dispatcher.dispatch(envelope))


@st.cache_resource
def get_runtime() -> HostRuntime:
    """Get or create the host runtime (cached)."""
    return HostRuntime()


def show_result(result, success_message: str) -> bool:
    if isinstance(result, dict) and result.get("success"):
        st.success(success_message)
        return True
    error = result.get("error") if isinstance(result, dict) else "Unexpected response"
    st.error(f"❌ {error}")
    return False


def render_lock_screen(runtime: HostRuntime):
    """Render the PIN pad and biometric button."""
    st.markdown("""
    <div class="lock-box">
        <div class="lock-title">🔒 Tijarati</div>
        <p>Enter your PIN to continue</p>
    </div>
    """, unsafe_allow_html=True)

    pin = st.text_input("PIN", type="password", max_chars=12, key="unlock_pin")

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Unlock", type="primary"):
            result = runtime.request(RequestKind.SECURITY_UNLOCK, {"pin": pin})
            if result.get("success"):
                st.rerun()
            else:
                st.error(result.get("error", "Unlock failed"))
    with col2:
        if st.button("👆 Use fingerprint"):
            if runtime.request(RequestKind.SECURITY_UNLOCK, {"biometric": True}).get("unlocked"):
                st.rerun()
            else:
                st.warning("Biometric unlock did not succeed. Use your PIN.")


def render_security_page(runtime: HostRuntime):
    """Render PIN and biometric settings."""
    st.title("🔐 Security")

    status = runtime.request(RequestKind.SECURITY_GET)
    col1, col2, col3 = st.columns(3)
    col1.metric("PIN", "On" if status.get("pinEnabled") else "Off")
    col2.metric("Fingerprint", "On" if status.get("biometricEnabled") else "Off")
    col3.metric("Sensor", "Available" if status.get("biometricsAvailable") else "None")

    st.markdown("---")

    if not status.get("pinEnabled"):
        st.markdown("### Set a PIN")
        new_pin = st.text_input("New PIN (at least 4 digits)", type="password", key="new_pin")
        if st.button("Enable PIN"):
            show_result(
                runtime.request(RequestKind.SECURITY_SET_PIN, {"pin": new_pin}),
                "✅ PIN set. The app is now locked.",
            )
            st.rerun()
    else:
        st.markdown("### Disable PIN")
        current_pin = st.text_input("Current PIN", type="password", key="current_pin")
        if st.button("Disable PIN"):
            show_result(
                runtime.request(RequestKind.SECURITY_DISABLE_PIN, {"pin": current_pin}),
                "✅ PIN disabled.",
            )

        st.markdown("### Fingerprint unlock")
        enabled = st.toggle("Unlock with fingerprint", value=bool(status.get("biometricEnabled")))
        if enabled != bool(status.get("biometricEnabled")):
            show_result(
                runtime.request(RequestKind.SECURITY_SET_BIOMETRIC, {"enabled": enabled}),
                "✅ Fingerprint setting saved.",
            )

        if st.button("🔒 Lock now"):
            runtime.run(runtime.host.on_background())
            st.rerun()


def render_backup_page(runtime: HostRuntime):
    """Render export, import and clear."""
    st.title("💾 Backup & Restore")

    st.markdown("### Export")
    result = runtime.request(RequestKind.EXPORT_DATA)
    if result.get("success"):
        snapshot = result["snapshot"]
        st.markdown(
            f"**{len(snapshot['transactions'])}** transactions, "
            f"**{len(snapshot['partners'])}** partners"
        )
        st.download_button(
            "⬇️ Download backup",
            data=json.dumps(snapshot, ensure_ascii=False, indent=2),
            file_name=f"tijarati-backup-{datetime.now():%Y%m%d-%H%M}.json",
            mime="application/json",
        )
    else:
        st.error(result.get("error"))

    st.markdown("---")
    st.markdown("### Restore")
    st.warning("Restoring **replaces** all current data with the backup.")
    uploaded = st.file_uploader("Backup file", type=["json"])
    confirm_import = st.checkbox("I understand my current data will be replaced")
    if uploaded is not None and st.button("Restore backup", disabled=not confirm_import):
        content = uploaded.getvalue().decode("utf-8")
        result = runtime.request(RequestKind.IMPORT_DATA, {"content": content})
        if show_result(result, "✅ Backup restored."):
            counts = result["counts"]
            st.info(
                f"Imported {counts['transactions']} transactions and "
                f"{counts['partners']} partners."
            )

    st.markdown("---")
    st.markdown("### Delete everything")
    confirm_clear = st.checkbox("Yes, delete all transactions and partners")
    if st.button("🗑️ Delete all data", disabled=not confirm_clear):
        show_result(runtime.request(RequestKind.CLEAR_ALL_DATA), "✅ All data deleted.")

    st.markdown("---")
    st.markdown("### Cloud backup")
    if st.button("☁️ Back up to cloud"):
        show_result(runtime.request(RequestKind.CLOUD_BACKUP), "✅ Backed up.")


def render_assistant_page(runtime: HostRuntime):
    """Render assistant key management and a test question."""
    st.title("🤖 Assistant")

    status = runtime.request(RequestKind.AI_STATUS)
    if status.get("enabled"):
        st.success(f"✅ Assistant ready ({status.get('model')})")
    else:
        st.warning("Assistant is off: no API key.")

    key = st.text_input("Gemini API key", type="password")
    col1, col2 = st.columns(2)
    with col1:
        if st.button("Save key"):
            show_result(runtime.request(RequestKind.AI_SET_GEMINI_KEY, {"key": key}), "✅ Key saved.")
    with col2:
        if st.button("Remove key"):
            show_result(runtime.request(RequestKind.AI_CLEAR_GEMINI_KEY), "✅ Key removed.")

    st.markdown("---")
    lang = st.selectbox("Language", ["darija", "arabic", "french", "english"], index=3)
    question = st.text_input("Ask about your business", placeholder="Who owes me the most?")
    if st.button("Ask", type="primary") and question:
        with st.spinner("Thinking..."):
            result = runtime.request(RequestKind.AI_GEMINI, {"message": question, "lang": lang})
        if result.get("success"):
            st.markdown(result["reply"])
        else:
            st.error(result.get("error"))


def render_console_page(runtime: HostRuntime):
    """Send a raw bridge envelope (for support and debugging)."""
    st.title("🧪 Bridge Console")
    raw = st.text_area(
        "Request envelope",
        value='{"id": "1", "type": "GET_TRANSACTIONS", "payload": {}}',
        height=150,
    )
    if st.button("Send"):
        response = runtime.run(runtime.host.handle_message(raw))
        if response is None:
            st.info("No response (request had no id or could not be parsed).")
        else:
            st.json(json.loads(response))


def render_settings_page():
    """Render the configuration check."""
    st.title("⚙️ Settings")
    st.markdown("### Configuration Status")

    status = validate_all_settings()
    sections = [
        ("Store", "store"),
        ("Security", "security"),
        ("Reminders", "reminders"),
        ("Gemini (AI)", "gemini"),
        ("App", "app"),
    ]
    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name}")
        else:
            st.error(f"❌ {name} - {status.get(f'{key}_error', 'Invalid')}")

    st.markdown("---")
    st.markdown(
        "Configuration comes from environment variables or a `.env` file "
        "(`TIJARATI_STORE_DB_PATH`, `TIJARATI_SECURITY_SECRETS_PATH`, "
        "`TIJARATI_GEMINI_API_KEY`, ...)."
    )


def main():
    """Main application entry point."""
    runtime = get_runtime()

    if runtime.host.gate.locked:
        render_lock_screen(runtime)
        return

    st.sidebar.title("📒 Tijarati")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["🔐 Security", "💾 Backup", "🤖 Assistant", "🧪 Bridge Console", "⚙️ Settings"],
        index=0,
    )

    if page == "🔐 Security":
        render_security_page(runtime)
    elif page == "💾 Backup":
        render_backup_page(runtime)
    elif page == "🤖 Assistant":
        render_assistant_page(runtime)
    elif page == "🧪 Bridge Console":
        render_console_page(runtime)
    elif page == "⚙️ Settings":
        render_settings_page()


if __name__ == "__main__":
    main()
