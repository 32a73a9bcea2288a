# ncryptor_app.py
# N-Cryptor: Gradio UI (protocol control + encode/decode buffer)

import logging
from typing import Optional

import gradio as gr
import ncryptor as nc
import protocols as pr

logger = logging.getLogger(__name__)


CSS = """
<style>
#title { margin-bottom: 0.25rem; }
.small { opacity: 0.90; font-size: 0.92rem; }
</style>
"""

ABOUT_MD = r"""
## About N-Cryptor

Every **protocol ID** deterministically rebuilds two things:

- a **substitution table**: a seeded shuffle of 94 printable ASCII characters
  (`A-Z`, `a-z`, `0-9` and 32 symbols);
- a **noise schedule**: after each substituted character, `1-3` (level 1) or
  `2-4` (level 2) filler characters are injected. Decoding recomputes the
  schedule from the ID and drops the filler without reading it.

Nothing but the ID needs to be shared. The same ID always yields the same
table and the same schedule.

**Stealth** removes all whitespace before encoding. It is lossy: decoded text
comes back without spaces.

`Legacy-00` is the original fixed symbol matrix. It only covers `A-Z` and
`0-9`, and `6`/`9` share a glyph (decodes to `6`).

This is an obfuscation toy, **not encryption**.
"""

_store: Optional[pr.ProtocolStore] = None


def get_store() -> pr.ProtocolStore:
    global _store
    if _store is None:
        _store = pr.ProtocolStore.open_default()
    return _store


def _resolve(protocol_id: str, store: pr.ProtocolStore) -> pr.Protocol:
    pid = (protocol_id or pr.LEGACY_ID).strip()
    if pid in store:
        return store.get(pid)
    return store.lookup(pid)


def _tier_line(protocol_id: str, stealth: bool, noise_level: int) -> str:
    tier = pr.security_tier(protocol_id, stealth, noise_level)
    return f"Tier: **{tier.value}** · Crack time estimate: {pr.crack_time_estimate(protocol_id)}"


def do_process(mode: str, text_in: str, protocol_id: str, stealth: bool, noise_level: int,
               store: Optional[pr.ProtocolStore] = None):
    try:
        store = store if store is not None else get_store()
        noise_level = max(0, int(noise_level))
        protocol = _resolve(protocol_id, store)

        out = pr.process_text(text_in, protocol, pr.Mode(mode), stealth, noise_level)
        if not out:
            return "", "Buffer empty."

        if pr.Mode(mode) is pr.Mode.ENCRYPT:
            ok = nc.round_trips(text_in, protocol.mapping, noise_level, protocol.id, strip_spaces=stealth)
            status = f"Encoded with #{protocol.id}. Self-check: {'OK' if ok else 'FAILED'}"
        else:
            status = f"Decoded with #{protocol.id}."

        return out, f"{status}  \n{_tier_line(protocol.id, stealth, noise_level)}"

    except Exception as e:
        logger.exception("Processing failed")
        return "", f"Error: {e}"


def do_spawn(store: Optional[pr.ProtocolStore] = None):
    try:
        store = store if store is not None else get_store()
        protocol = store.spawn()
        return protocol.id, "", f"New identity spawned: **#{protocol.id}**"
    except Exception as e:
        logger.exception("Spawn failed")
        return pr.LEGACY_ID, "", f"Error: {e}"


def do_lookup(raw_id: str, store: Optional[pr.ProtocolStore] = None):
    try:
        store = store if store is not None else get_store()
        protocol = store.lookup(raw_id)
        return protocol.id, f"Protocol synced: **#{protocol.id}** ({protocol.name})"
    except Exception as e:
        return pr.LEGACY_ID, f"Error: {e}"


def do_list(store: Optional[pr.ProtocolStore] = None) -> str:
    try:
        store = store if store is not None else get_store()
    except Exception as e:
        logger.exception("Listing failed")
        return f"Error: {e}"
    rows = ["| ID | Name | Built-in |", "|---|---|---|"]
    for p in store:
        rows.append(f"| `{p.id}` | {p.name} | {'yes' if p.is_built_in else ''} |")
    return "\n".join(rows)


def do_swap(mode: str, text_in: str, text_out: str):
    other = pr.Mode.DECRYPT if pr.Mode(mode) is pr.Mode.ENCRYPT else pr.Mode.ENCRYPT
    return other.value, text_out, text_in, f"Swapped. Mode: {other.value}"


def build_app():
    with gr.Blocks(title="N-Cryptor") as demo:
        gr.HTML(CSS)

        gr.Markdown("# N-Cryptor", elem_id="title")
        gr.Markdown(
            "Seed-derived substitution with an interleaved noise layer. "
            "A short **protocol ID** rebuilds the whole table, so only the ID has to be shared.",
            elem_classes=["small"],
        )

        with gr.Tabs():
            with gr.TabItem("Buffer"):
                with gr.Row():
                    mode = gr.Radio(
                        choices=[m.value for m in pr.Mode],
                        value=pr.Mode.ENCRYPT.value,
                        label="Mode",
                    )
                    protocol_id = gr.Textbox(label="Active protocol ID", value=pr.LEGACY_ID)

                with gr.Row():
                    stealth = gr.Checkbox(value=pr.DEFAULT_STEALTH, label="Stealth (strip whitespace, lossy)")
                    noise_level = gr.Slider(0, 2, value=pr.DEFAULT_NOISE_LEVEL, step=1, label="Noise level")

                text_in = gr.Textbox(label="Input channel", lines=4)

                with gr.Row():
                    btn_run = gr.Button("Process")
                    btn_swap = gr.Button("Swap ↔")

                text_out = gr.Textbox(label="Output channel", lines=4)
                status = gr.Markdown("Tip: pick or spawn a protocol, then Process.")

                btn_run.click(
                    do_process,
                    inputs=[mode, text_in, protocol_id, stealth, noise_level],
                    outputs=[text_out, status],
                )
                btn_swap.click(
                    do_swap,
                    inputs=[mode, text_in, text_out],
                    outputs=[mode, text_in, text_out, status],
                )

            with gr.TabItem("Protocol Control"):
                lookup_in = gr.Textbox(label="Sync protocol ID", placeholder="#ID (min. 3 chars)")
                with gr.Row():
                    btn_lookup = gr.Button("Sync")
                    btn_spawn = gr.Button("Spawn new identity")
                    btn_list = gr.Button("Refresh list")
                control_status = gr.Markdown("")
                known = gr.Markdown(do_list)

                btn_lookup.click(
                    do_lookup,
                    inputs=[lookup_in],
                    outputs=[protocol_id, control_status],
                )
                btn_spawn.click(
                    do_spawn,
                    inputs=[],
                    outputs=[protocol_id, text_in, control_status],
                )
                btn_list.click(do_list, inputs=[], outputs=[known])

            with gr.TabItem("About"):
                gr.Markdown(ABOUT_MD)

    return demo


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = build_app()
    app.launch()
