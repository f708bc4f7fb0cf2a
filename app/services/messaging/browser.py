"""
WhatsApp Web driven through Playwright.

The page is polled for the pairing QR (`div[data-ref]`) and the chat pane
(`#pane-side`); transitions between the two become client events. Selectors
follow the current WhatsApp Web markup and are the first thing to check when
the driver stops seeing a state change.
"""

import asyncio
import base64
import json
import platform
import re
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from app.constants import (
    CLIENT_EVENT_AUTHENTICATED,
    CLIENT_EVENT_DISCONNECTED,
    CLIENT_EVENT_MESSAGE,
    CLIENT_EVENT_QR,
    CLIENT_EVENT_READY,
    CONTACT_SUFFIX,
    GROUP_SUFFIX,
)
from app.services.messaging.base import MessageMedia, SessionClient

WEB_URL = "https://web.whatsapp.com/"

QR_SELECTOR = "div[data-ref]"
CHAT_PANE_SELECTOR = "#pane-side"
SEARCH_SELECTOR = '#side div[contenteditable="true"][role="textbox"]'
COMPOSER_SELECTOR = 'footer div[contenteditable="true"][role="textbox"]'
ATTACH_SELECTOR = '[data-icon="plus"], [data-icon="clip"], [data-icon="attach-menu-plus"]'
MEDIA_CAPTION_SELECTOR = 'div[contenteditable="true"][role="textbox"][aria-label]'
SEND_SELECTOR = '[data-icon="send"], [aria-label="Send"]'
OWN_AVATAR_SELECTOR = "header img"

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--password-store=basic",
    "--use-mock-keychain",
]

PROFILE_LOCK_FILES = ["SingletonLock", "SingletonCookie", "SingletonSocket", "LOCK"]

# Pushes incoming message bubbles to the gateway as they are rendered
MESSAGE_OBSERVER_SCRIPT = """
(() => {
  if (window.__gatewayObserver) return;
  const seen = new Set();
  const report = (node) => {
    const id = node.getAttribute && node.getAttribute('data-id');
    if (!id || !id.startsWith('false_') || seen.has(id)) return;
    seen.add(id);
    const text = node.querySelector('.selectable-text span, span.selectable-text');
    if (window.__gatewayOnMessage) {
      window.__gatewayOnMessage({ id, body: text ? text.innerText : '' });
    }
  };
  const scan = (root) => {
    if (root.matches && root.matches('[data-id]')) report(root);
    if (root.querySelectorAll) root.querySelectorAll('[data-id]').forEach(report);
  };
  window.__gatewayObserver = new MutationObserver((mutations) => {
    for (const m of mutations) m.addedNodes.forEach(scan);
  });
  const start = () => window.__gatewayObserver.observe(document.body, { childList: true, subtree: true });
  if (document.body) start(); else document.addEventListener('DOMContentLoaded', start);
})();
"""

CHAT_LIST_SCRIPT = """
() => Array.from(document.querySelectorAll('#pane-side div[role="listitem"], #pane-side div[role="row"]'))
  .map((row) => {
    const title = row.querySelector('span[title]');
    const unread = row.querySelector('span[aria-label*="unread"]');
    return {
      name: title ? title.getAttribute('title') : null,
      unreadCount: unread ? (parseInt(unread.textContent, 10) || 0) : 0,
      isGroup: !!row.querySelector('[data-icon="default-group"], [data-icon="group"]'),
    };
  })
  .filter((chat) => chat.name)
"""

WID_STORAGE_SCRIPT = """
() => ({
  wid: localStorage.getItem('last-wid-md') || localStorage.getItem('last-wid'),
  pushname: localStorage.getItem('me-display-name'),
})
"""

PHONE_LIKE = re.compile(r"^\+?[\d\s\-()]{6,}$")


def resolve_executable_path(explicit: Optional[str] = None) -> Optional[str]:
    """Chromium/Chrome binary to drive; None lets Playwright use its own build"""
    if explicit:
        return explicit

    system = platform.system()
    if system == "Linux":
        candidates = ["/usr/bin/chromium-browser", "/usr/bin/chromium", "/usr/bin/google-chrome"]
    elif system == "Windows":
        candidates = [
            "C:/Program Files/Google/Chrome/Application/chrome.exe",
            "C:/Program Files (x86)/Google/Chrome/Application/chrome.exe",
            "C:/Program Files (x86)/Microsoft/Edge/Application/msedge.exe",
            "C:/Program Files/Microsoft/Edge/Application/msedge.exe",
        ]
    elif system == "Darwin":
        candidates = [
            "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
            "/Applications/Microsoft Edge.app/Contents/MacOS/Microsoft Edge",
        ]
    else:
        candidates = []

    for candidate in candidates:
        if Path(candidate).exists():
            return candidate
    return None


def clear_profile_locks(profile_dir: Path) -> List[Path]:
    """Remove Chromium lock files a crashed browser leaves in its profile"""
    removed = []
    if not profile_dir.exists():
        return removed

    targets = [profile_dir / name for name in PROFILE_LOCK_FILES]
    targets += [p for p in profile_dir.iterdir() if p.name.startswith(".org.chromium.")]
    for target in targets:
        try:
            if target.is_symlink() or target.is_file():
                target.unlink()
                removed.append(target)
        except OSError:
            continue
    return removed


def parse_stored_wid(raw: Optional[str]) -> Optional[Dict[str, str]]:
    """`"4915112345678:12@c.us"` as stored by WhatsApp Web -> wid object"""
    if not raw:
        return None
    value = raw.strip().strip('"')
    user, _, server = value.partition("@")
    user = user.split(":", 1)[0]
    if not user:
        return None
    server = server or "c.us"
    return {"user": user, "server": server, "_serialized": f"{user}@{server}"}


class BrowserClient(SessionClient):
    """WhatsApp Web session in a persistent Chromium profile"""

    def __init__(
        self,
        profile_dir: Union[str, Path],
        cache_dir: Union[str, Path],
        executable_path: Optional[str] = None,
        headless: bool = True,
        poll_interval: float = 1.0,
        startup_timeout: float = 120.0,
    ):
        super().__init__()
        self.profile_dir = Path(profile_dir)
        self.cache_dir = Path(cache_dir)
        self.executable_path = resolve_executable_path(executable_path)
        self.headless = headless
        self.poll_interval = poll_interval
        self.startup_timeout = startup_timeout

        self._playwright = None
        self._context = None
        self._page = None
        self._watcher: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._authenticated = False
        self._last_qr: Optional[str] = None
        self._chat_names: Dict[str, str] = {}

    async def initialize(self) -> None:
        from playwright.async_api import async_playwright

        if self._context is not None:
            await self._teardown()

        self.profile_dir.mkdir(parents=True, exist_ok=True)
        for path in clear_profile_locks(self.profile_dir):
            self.logger.info(f"Removed stale browser lock {path.name}")

        self._playwright = await async_playwright().start()
        try:
            self._context = await self._playwright.chromium.launch_persistent_context(
                user_data_dir=str(self.profile_dir),
                headless=self.headless,
                executable_path=self.executable_path,
                args=BROWSER_ARGS,
                viewport={"width": 1280, "height": 900},
            )
            await self._context.expose_function("__gatewayOnMessage", self._on_incoming)
            await self._context.add_init_script(MESSAGE_OBSERVER_SCRIPT)

            pages = self._context.pages
            self._page = pages[0] if pages else await self._context.new_page()
            timeout_ms = self.startup_timeout * 1000
            await self._page.goto(WEB_URL, wait_until="domcontentloaded", timeout=timeout_ms)
            await self._page.wait_for_selector(
                f"{QR_SELECTOR}, {CHAT_PANE_SELECTOR}", timeout=timeout_ms
            )
        except Exception:
            await self._teardown()
            raise

        self._authenticated = False
        self._last_qr = None
        self._watcher = asyncio.create_task(self._watch())
        self.logger.info("WhatsApp Web loaded")

    async def destroy(self) -> None:
        self._authenticated = False
        await self._teardown()

    async def _teardown(self) -> None:
        if self._watcher is not None and not self._watcher.done():
            self._watcher.cancel()
        self._watcher = None
        if self._context is not None:
            try:
                await self._context.close()
            except Exception as e:
                self.logger.warning(f"Error closing browser context: {e}")
        if self._playwright is not None:
            await self._playwright.stop()
        self._context = None
        self._page = None
        self._playwright = None

    async def _watch(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            page = self._page
            if page is None or page.is_closed():
                if self._authenticated:
                    self._authenticated = False
                    self.emit(CLIENT_EVENT_DISCONNECTED, reason="NAVIGATION")
                return

            try:
                logged_in = await page.locator(CHAT_PANE_SELECTOR).count() > 0
                qr_node = page.locator(QR_SELECTOR)
                qr_ref = await qr_node.first.get_attribute("data-ref") if await qr_node.count() else None
            except Exception as e:
                # Navigation in progress
                self.logger.debug(f"Page poll failed: {e}")
                continue

            if logged_in:
                if not self._authenticated:
                    self._authenticated = True
                    self._last_qr = None
                    self.emit(CLIENT_EVENT_AUTHENTICATED)
                    self.emit(CLIENT_EVENT_READY)
                continue

            if qr_ref and self._authenticated:
                self._authenticated = False
                self.emit(CLIENT_EVENT_DISCONNECTED, reason="LOGOUT")
                return

            if qr_ref and qr_ref != self._last_qr:
                self._last_qr = qr_ref
                self.emit(CLIENT_EVENT_QR, code=qr_ref)

    def _on_incoming(self, message: Dict[str, Any]) -> None:
        message_id = message.get("id", "")
        parts = message_id.split("_")
        sender = parts[1] if len(parts) > 2 else None
        self.emit(CLIENT_EVENT_MESSAGE, id=message_id, sender=sender, body=message.get("body", ""))

    def _require_page(self):
        if self._page is None or self._page.is_closed():
            raise RuntimeError("WhatsApp Web page is not open")
        return self._page

    async def _open_chat(self, page, chat_id: str) -> None:
        if chat_id.endswith(CONTACT_SUFFIX):
            number = chat_id[: -len(CONTACT_SUFFIX)]
            await page.goto(f"{WEB_URL}send?phone={number}", wait_until="domcontentloaded")
        else:
            name = self._chat_names.get(chat_id) or chat_id.split("@", 1)[0]
            search = page.locator(SEARCH_SELECTOR).first
            await search.click()
            await search.fill(name)
            await page.locator(f'#pane-side span[title="{name}"]').first.click(timeout=15000)

        try:
            await page.wait_for_selector(COMPOSER_SELECTOR, timeout=30000)
        except Exception as e:
            raise RuntimeError(f"Chat {chat_id} could not be opened") from e

    async def _attach(self, page, media: MessageMedia, caption: str) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self.cache_dir / f"{uuid.uuid4().hex}-{Path(media.filename).name}"
        path.write_bytes(base64.b64decode(media.data))
        try:
            await page.locator(ATTACH_SELECTOR).first.click()
            visual = media.mimetype.startswith(("image/", "video/"))
            inputs = page.locator(
                'input[type="file"][accept*="image"]' if visual else 'input[type="file"]:not([accept*="image"])'
            )
            if await inputs.count() == 0:
                inputs = page.locator('input[type="file"]')
            await inputs.first.set_input_files(str(path))

            caption_box = page.locator(MEDIA_CAPTION_SELECTOR).last
            await caption_box.wait_for(timeout=15000)
            if caption:
                await caption_box.fill(caption)
            await page.locator(SEND_SELECTOR).last.click()
            await asyncio.sleep(1.0)
        finally:
            path.unlink(missing_ok=True)

    async def send_message(
        self, chat_id: str, content: str, media: Optional[MessageMedia] = None
    ) -> Dict[str, Any]:
        page = self._require_page()
        async with self._lock:
            await self._open_chat(page, chat_id)
            if media is not None:
                await self._attach(page, media, content)
            else:
                composer = page.locator(COMPOSER_SELECTOR).last
                await composer.fill(content)
                await page.keyboard.press("Enter")
                await asyncio.sleep(0.5)
        return {"to": chat_id, "hasMedia": media is not None}

    async def get_chats(self) -> List[Dict[str, Any]]:
        page = self._require_page()
        rows = await page.evaluate(CHAT_LIST_SCRIPT)
        chats = []
        for row in rows:
            name = row["name"]
            if row["isGroup"]:
                chat_id = f"{name}{GROUP_SUFFIX}"
            elif PHONE_LIKE.match(name):
                chat_id = f"{re.sub(r'[^0-9]', '', name)}{CONTACT_SUFFIX}"
            else:
                chat_id = f"{name}{CONTACT_SUFFIX}"
            self._chat_names[chat_id] = name
            chats.append(
                {
                    "id": {"_serialized": chat_id, "user": chat_id.split("@", 1)[0]},
                    "name": name,
                    "isGroup": row["isGroup"],
                    "unreadCount": row["unreadCount"],
                }
            )
        return chats

    async def get_contacts(self) -> List[Dict[str, Any]]:
        chats = await self.get_chats()
        return [
            {
                "id": chat["id"],
                "name": chat["name"],
                "number": chat["id"]["user"] if PHONE_LIKE.match(chat["id"]["user"]) else None,
                "isGroup": False,
            }
            for chat in chats
            if not chat["isGroup"]
        ]

    async def get_info(self) -> Dict[str, Any]:
        page = self._require_page()
        stored = await page.evaluate(WID_STORAGE_SCRIPT)
        pushname = stored.get("pushname")
        if pushname:
            try:
                pushname = json.loads(pushname)
            except json.JSONDecodeError:
                pass
        return {
            "wid": parse_stored_wid(stored.get("wid")),
            "pushname": pushname,
            "platform": "web",
        }

    async def get_profile_pic_url(self, wid: str) -> Optional[str]:
        page = self._require_page()
        info = await self.get_info()
        own = info["wid"]["_serialized"] if info.get("wid") else None
        if wid != own:
            return None
        avatar = page.locator(OWN_AVATAR_SELECTOR)
        if await avatar.count() == 0:
            return None
        return await avatar.first.get_attribute("src")
