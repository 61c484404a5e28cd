# tonneru

An asyncio library for controlling WireGuard tunnels on Linux. All privileged
work goes through one helper program, `/usr/lib/tonneru/tonneru-sudo`, which
is run under `sudo`. Every call to it gives up after five seconds, so a sudo
password prompt cannot hang the caller. The helper itself is not part of this
package and must be installed separately.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

### `tonneru.vpn.helper`

- `run_helper(args)` runs `sudo /usr/lib/tonneru/tonneru-sudo <args>` and
  returns a `subprocess.CompletedProcess` with the exit code and the raw
  output bytes.
- `run_helper_with_stdin(args, stdin_data)` does the same and writes
  `stdin_data` to the helper's standard input.
- `run_command_with_timeout(cmd, args)` runs any command under the same
  five-second limit (`SUDO_TIMEOUT`).

A command that cannot be started, or that does not finish in time, raises
`HelperError`; a command that runs and fails is returned with its non-zero
exit code.

### `tonneru.vpn.wireguard`

- `get_status()` returns a `WgStatus` with `connected`, `interface`,
  `endpoint`, `latest_handshake`, `transfer_rx`, `transfer_tx`,
  `handshake_stale`, `has_traffic` and `routing_ok`. It asks the helper for
  `status`; if that gives nothing, it falls back to
  `ip link show type wireguard` and reports only the interface name.
- `parse_wg_show_output(stdout)` builds a `WgStatus` from `wg show` output.
- `is_handshake_stale(handshake)` is true when the handshake is three minutes
  old or more (any age in hours or days counts), and also when the text
  cannot be read. An age in seconds only is fresh.
- `has_meaningful_traffic(rx, tx)` is true when more than 1024 bytes have been
  transferred in total. Units B, KB/KiB, MB/MiB and GB/GiB are understood.
- `check_vpn_routing(vpn_interface)` checks whether the default route, or a
  `0.0.0.0/1` or `128.0.0.0/1` split route, goes through the interface.
- `connect(profile_name)` first disconnects any active tunnel, then asks the
  helper to bring the profile up. It raises `WireGuardError` on failure.
- `disconnect()` asks the helper to bring the active tunnel down. Failures
  are logged, not raised.
- `health_check()` returns a `VpnHealthCheck` with `is_healthy()` and
  `is_degraded()`. It pings `1.1.1.1` and, if that fails, falls back to an
  HTTP probe with `curl`; `latency_ms` is set when either succeeds.
- `get_interface_uptime(interface)` returns the seconds since the interface's
  sysfs `uevent` file was last modified, or `None`.
- `is_alive()` is true when an interface is up and its handshake is fresh.
- `refresh_connection()` pings the peer endpoint and `1.1.1.1` to prompt a new
  handshake. It raises `WireGuardError` when no tunnel is up.

```python
import asyncio
from tonneru.vpn import wireguard

status = asyncio.run(wireguard.get_status())
if status.connected:
    print(status.interface, status.transfer_rx, status.transfer_tx)
```

### `tonneru.vpn.killswitch`

- `enable()` blocks all traffic except through the active WireGuard
  interface, or `wg0` when none is up. It raises `KillSwitchError` when the
  helper reports failure, and `HelperError` when the helper cannot be run.
- `disable()` turns the kill switch off, checks the result, retries once, and
  raises `KillSwitchError` if it is still on.
- `is_enabled()` is true when the helper prints `enabled`; it is false when
  the helper cannot be run.

### `tonneru.theme`

`Theme` is a frozen dataclass of RGB tuples for interface roles (`accent`,
`danger`, `warning`, `text`, `bg_selected` and so on). `Theme()` holds the
built-in colours. `Theme.load(path=None)` reads a kitty-style `kitty.conf`,
by default `~/.config/omarchy/current/theme/kitty.conf`. Entries have the form
`key #RRGGBB` or `key #RGB`. When the file is missing, unreadable or holds no
colours, the built-in colours are returned. `Theme.from_colors(colors)` maps
kitty colour names (`color0` to `color12`, `foreground`, `background`,
`selection_background`, `inactive_border_color`) onto the roles, with fixed
fallbacks for any that are missing. `parse_kitty_conf(content)` and
`parse_hex_color(value)` can be called on their own.

## What this package does not do

There is no command-line program and no terminal interface; the package is a
library only. It does not list, import, save or delete tunnel profiles, keep a
record of known tunnels, or store per-network rules. The privileged helper
script that the functions call is not included.