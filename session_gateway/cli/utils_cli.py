# session_gateway/cli/utils_cli.py
import json
from typing import Any, Dict, List, Optional, Union

import requests
import typer

from .config import GATEWAY_CLI_API_BASE_URL


def make_api_request(
    method: str,
    endpoint: str,
    json_payload: Optional[Dict[str, Any]] = None,
    expected_status: Union[int, List[int]] = 200,
) -> Any:
    """
    Makes an HTTP request to a running gateway and returns the decoded JSON body.

    Any transport error or unexpected status is printed and ends the command
    with exit code 1.
    """
    full_url = f"{GATEWAY_CLI_API_BASE_URL}{endpoint}"
    typer.echo(f"CLI: {method.upper()} {full_url}")

    try:
        response = requests.request(method, full_url, json=json_payload, timeout=30)
    except requests.exceptions.ConnectionError as e:
        typer.secho(
            f"CLI: Connection Error - Could not connect to API at {full_url}. Is the server running? Error: {e}",
            fg=typer.colors.RED
        )
        raise typer.Exit(code=1)
    except requests.exceptions.RequestException as e:
        typer.secho(f"CLI: Request Error - {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"CLI: Response Status: {response.status_code}")
    expected_statuses = [expected_status] if isinstance(expected_status, int) else expected_status
    if response.status_code not in expected_statuses:
        err_msg = f"CLI: API Error - Expected status {expected_status}, got {response.status_code}."
        try:
            err_msg += f" Detail: {response.json().get('detail', response.text)}"
        except ValueError:
            err_msg += f" Raw response: {response.text}"
        typer.secho(err_msg, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    try:
        data = response.json()
    except ValueError:
        typer.secho(f"CLI: Error - Could not decode JSON response. Raw text: {response.text}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(data, indent=2))
    return data
