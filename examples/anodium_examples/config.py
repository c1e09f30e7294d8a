""" Sample script
Copy to ~/.config/anodium/config.py
- Super+Return opens a terminal, Super+Shift+r reloads this file
- every output gets a top panel with its name, a clock, the frame rate and a menu
- outputs are laid out side by side, the widest mode is preferred
"""

import time

keyboard.callbacks.add("Super", "Return", lambda: system.exec("foot"))
keyboard.callbacks.add("Super+Shift", "r", system.reload)
keyboard.callbacks.add("Super", ["x", "l"], lambda: system.exec("swaylock"))


def show_kernel(result):
    log.info("kernel", status=result["status"], release=result["output"].strip())


system.exec_read("uname -r", show_kernel)


def on_new(output):
    "Build the panel of a new output"
    panel = container.panel(layout.horizontal(), position.top())
    panel.background_color = "#202020"
    panel.opacity = 0.9

    panel.add_widget(widget.text(output.name))

    clock = widget.text(time.strftime("%H:%M"))
    panel.add_widget(clock)

    def refresh_clock():
        if not clock.alive:
            return False
        clock.text = time.strftime("%H:%M")
        return True

    system.add_timeout(1000, refresh_clock)

    panel.add_widget(widget.fps())

    apps = menu.new("Apps")
    apps.add_item("Terminal", lambda: system.exec("foot"))
    apps.add_item("Browser", lambda: system.exec("firefox"))
    power = menu.new("Power")
    power.add_item("Lock", lambda: system.exec("swaylock"))
    apps.add_submenu("Power", power)
    panel.add_widget(apps)

    panel.add_widget(widget.button("Reload", system.reload))
    output.add_widget(panel)

    console = container.box(layout.vertical(), position.bottom())
    console.add_widget(widget.logger())
    output.add_widget(console)


outputs.on_new(on_new)


def side_by_side(outs):
    x = 0
    placements = []
    for output in outs:
        placements.append((x, 0))
        x += output.width
    return placements


outputs.on_rearrange(side_by_side)


def widest(output, modes, state):
    state.picks += 1
    log.debug("mode selection", output=output.name, candidates=len(modes), picks=state.picks)
    return modes.best()


outputs.on_mode_select(widest, state={"picks": 0})
