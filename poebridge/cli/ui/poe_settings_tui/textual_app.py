"""Textual settings panel for Poe credentials and model selection."""

from __future__ import annotations

from typing import Optional

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Select, Static

from poebridge.core.config import PoeSettings
from poebridge.core.key_info import KeyInfoCache, format_balance
from poebridge.core.model_info import POE_API_KEY_URL, POE_DEFAULT_MODEL_ID, ModelCatalog
from poebridge.core.service_url import POE_BASE_URL


def model_select_options(
    models: ModelCatalog, selected: Optional[str] = None
) -> list[tuple[str, str]]:
    """Sorted (label, value) pairs; the default and current selection are always offered."""
    model_ids = set(models)
    model_ids.add(POE_DEFAULT_MODEL_ID)
    if selected:
        model_ids.add(selected)
    options: list[tuple[str, str]] = []
    for model_id in sorted(model_ids, key=str.lower):
        info = models.get(model_id)
        if info is None:
            label = f"{model_id} (not in catalog)" if model_id != POE_DEFAULT_MODEL_ID else model_id
        elif info.input_price is not None and info.output_price is not None:
            label = f"{model_id}  ${info.input_price:g} / ${info.output_price:g} per 1M"
        else:
            label = model_id
        options.append((label, model_id))
    return options


def api_key_hint(api_key: Optional[str]) -> str:
    if api_key and api_key.strip():
        return "API keys are stored locally in ~/.poebridge.json."
    return f"Get a Poe API key at {POE_API_KEY_URL}"


def settings_from_form(
    current: PoeSettings,
    *,
    api_key: str,
    base_url: str,
    model_id: object,
) -> PoeSettings:
    """Merge form values into ``current``; blank inputs clear the field."""
    return current.model_copy(
        update={
            "poe_api_key": api_key.strip() or None,
            "poe_base_url": base_url.strip() or None,
            "poe_model_id": model_id if isinstance(model_id, str) and model_id else None,
        }
    )


class PoeSettingsScreen(ModalScreen[Optional[PoeSettings]]):
    """Modal form editing :class:`PoeSettings`."""

    def __init__(
        self,
        settings: PoeSettings,
        models: ModelCatalog,
        key_info_cache: Optional[KeyInfoCache] = None,
    ) -> None:
        super().__init__()
        self._settings = settings
        self._models = models
        self._key_info_cache = key_info_cache or KeyInfoCache()

    def compose(self) -> ComposeResult:
        selected = self._settings.poe_model_id or POE_DEFAULT_MODEL_ID
        with Container(id="form_dialog"):
            yield Static("Poe settings", id="form_title")
            with VerticalScroll(id="form_fields"):
                with Horizontal(classes="label_row"):
                    yield Static("Poe API key", classes="field_label")
                    yield Static("", id="balance_label")
                yield Input(
                    value=self._settings.poe_api_key or "",
                    password=True,
                    placeholder="Enter API key...",
                    id="api_key_input",
                )
                yield Static(api_key_hint(self._settings.poe_api_key), id="api_key_hint")

                yield Static("Base URL (optional)", classes="field_label")
                yield Input(
                    value=self._settings.poe_base_url or "",
                    placeholder=POE_BASE_URL,
                    id="base_url_input",
                )

                yield Static("Model", classes="field_label")
                yield Select(
                    model_select_options(self._models, selected),
                    value=selected,
                    allow_blank=False,
                    id="model_select",
                )

            with Horizontal(id="form_buttons"):
                yield Button("Save", id="form_save", variant="primary")
                yield Button("Cancel", id="form_cancel")

    def on_mount(self) -> None:
        self._refresh_balance(self._settings.poe_api_key or "")

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "api_key_input":
            return
        self.query_one("#api_key_hint", Static).update(api_key_hint(event.value))
        self._refresh_balance(event.value)

    def _refresh_balance(self, api_key: str) -> None:
        label = self.query_one("#balance_label", Static)
        label.update("")
        if not api_key.strip():
            return
        self.run_worker(
            self._load_balance(api_key.strip()),
            exclusive=True,
            group="poe_balance",
        )

    async def _load_balance(self, api_key: str) -> None:
        info = await self._key_info_cache.get(api_key, self._settings.poe_base_url)
        self.query_one("#balance_label", Static).update(format_balance(info) or "")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "form_cancel":
            self.dismiss(None)
            return
        if event.button.id != "form_save":
            return
        self.dismiss(
            settings_from_form(
                self._settings,
                api_key=self.query_one("#api_key_input", Input).value,
                base_url=self.query_one("#base_url_input", Input).value,
                model_id=self.query_one("#model_select", Select).value,
            )
        )


class PoeSettingsApp(App[Optional[PoeSettings]]):
    CSS = """
    #form_dialog {
        width: 72;
        max-height: 90%;
        background: $panel;
        border: round $accent;
        padding: 1 2;
    }

    #form_title {
        text-style: bold;
        padding: 0 0 1 0;
    }

    #form_fields Input, #form_fields Select {
        margin: 0 0 1 0;
    }

    .label_row {
        height: auto;
    }

    .field_label {
        color: $text-muted;
        width: 1fr;
    }

    #balance_label {
        width: auto;
        color: $accent;
    }

    #api_key_hint {
        color: $text-muted;
        padding: 0 0 1 0;
    }

    #form_buttons {
        align-horizontal: right;
        padding-top: 1;
        height: auto;
    }
    """

    BINDINGS = [("escape", "quit", "Quit")]

    def __init__(self, settings: PoeSettings, models: ModelCatalog) -> None:
        super().__init__()
        self._settings = settings
        self._models = models

    def on_mount(self) -> None:
        self.push_screen(PoeSettingsScreen(self._settings, self._models), self._handle_result)

    def _handle_result(self, result: Optional[PoeSettings]) -> None:
        self.exit(result)


def run_poe_settings_tui(settings: PoeSettings, models: ModelCatalog) -> Optional[PoeSettings]:
    """Run the settings panel and return the edited settings, or None if cancelled."""
    return PoeSettingsApp(settings, models).run()
