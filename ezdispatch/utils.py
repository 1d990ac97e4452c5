from os.path import isfile, splitext
from mimetypes import guess_type


TEMPLATE_EXTENSIONS = (".html", ".htm", ".j2", ".jinja", ".jinja2")


def validate_path(path: str) -> None:
    """Checks that `path` is a string pointing to an existing file.

    Raises:
        ValueError: If `path` is not a non-empty string.
        FileNotFoundError: If no file exists at `path`.
    """
    if not isinstance(path, str) or not path.strip():
        raise ValueError("File path must be a non-empty string.")
    if not isfile(path):
        raise FileNotFoundError(f"File not found: {path}")


def validate_template(path: str) -> None:
    """Checks that `path` is an existing HTML/Jinja2 template file.

    Raises:
        ValueError: If the extension is not a template extension.
        FileNotFoundError: If the file does not exist.
    """
    validate_path(path)
    if splitext(path)[1].lower() not in TEMPLATE_EXTENSIONS:
        raise ValueError(f"Not a valid HTML template: {path}")


def validate_image(path: str) -> None:
    """Checks that `path` is an existing file with an image MIME type.

    Raises:
        ValueError: If the file is not recognised as an image.
        FileNotFoundError: If the file does not exist.
    """
    validate_path(path)
    mime_type, _ = guess_type(path)
    if not mime_type or not mime_type.startswith("image/"):
        raise ValueError(f"Not a valid image file: {path}")


def validate_protocol_config(config: dict) -> None:
    """Validates a server config dict of the form {"server": str, "port": int}.

    Optional boolean keys `ssl` and `starttls` are accepted.

    Raises:
        ValueError: If keys are missing or have the wrong type.
    """
    if not isinstance(config, dict):
        raise ValueError("Server config must be a dict.")
    server = config.get("server")
    if not isinstance(server, str) or not server.strip():
        raise ValueError("Server config requires a non-empty 'server' string.")
    port = config.get("port")
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise ValueError("Server config requires an integer 'port' between 1 and 65535.")
    for flag in ("ssl", "starttls"):
        if flag in config and config[flag] is not None and not isinstance(config[flag], bool):
            raise ValueError(f"Server config '{flag}' must be a boolean.")
    if config.get("ssl") and config.get("starttls"):
        raise ValueError("Server config cannot enable both 'ssl' and 'starttls'.")


def validate_sender(sender: dict) -> None:
    """Validates sender credentials of the form {"email": str, "password": str}.

    Raises:
        ValueError: If keys are missing or are not strings.
    """
    if not isinstance(sender, dict):
        raise ValueError("Sender must be a dict.")
    email = sender.get("email")
    if not isinstance(email, str) or not email.strip():
        raise ValueError("Sender requires a non-empty 'email' string.")
    if not isinstance(sender.get("password"), str):
        raise ValueError("Sender requires a 'password' string.")
