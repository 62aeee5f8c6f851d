"""CLI Commands"""

import os
import sys

from chadcommit.config import Config, MIN_PROMPT_LENGTH, load_config, save_config, get_config_path
from chadcommit.llm import MODELS
from chadcommit.output import bold, dim, info, print_success


def _mask_key(key: str | None) -> str:
    if not key:
        return "not set"
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:3]}...{key[-4:]}"


def display_config() -> int:
    """Display current configuration."""
    config = load_config()
    config_path = get_config_path()

    print(f"\n{bold('Current Configuration')}\n")

    if config_path:
        print(f"  {dim('Loaded from:')} {config_path}")
    else:
        print(f"  {dim('Loaded from:')} defaults (no .chadcommitrc found)")

    env_key = os.environ.get('OPENAI_API_KEY')
    env_model = os.environ.get('CHADCOMMIT_MODEL')
    if env_key or env_model:
        print(f"  {dim('Environment overrides:')}")
        if env_key:
            print(f"    OPENAI_API_KEY={_mask_key(env_key)}")
        if env_model:
            print(f"    CHADCOMMIT_MODEL={env_model}")

    prompt_preview = config.prompt.split('\n')[0]
    if len(prompt_preview) > 50:
        prompt_preview = prompt_preview[:47] + '...'

    print()
    print(f"  {bold('Settings:')}")
    print(f"    api_key:           {info(_mask_key(config.api_key))}")
    print(f"    model:             {info(config.model)}")
    print(f"    max_tokens:        {info(str(config.max_tokens))}")
    print(f"    max_request_chars: {info(str(config.max_request_chars))}")
    print(f"    timeout:           {info(f'{config.timeout:g}s')}")
    print(f"    prompt:            {info(prompt_preview)}")

    print(f"\n  {dim('Config locations:')}")
    print(f"    Local:  .chadcommitrc (in current directory)")
    print(f"    Global: ~/.chadcommitrc")
    print(f"\n  {dim('Run')} chadcommit --setup {dim('to configure')}\n")

    return 0


def run_setup() -> int:
    """Quick setup wizard."""
    display_config()
    current = load_config()
    print(f"{bold('Setup Wizard')}\n")

    api_key = input("OpenAI API key (Enter to keep current): ").strip() or current.api_key

    print("\nChoose model:\n")
    for i, name in enumerate(MODELS, 1):
        print(f"  {i}. {name}")
    print()

    model = current.model
    while True:
        choice = input(f"Select [1-{len(MODELS)}] (Enter for {current.model}): ").strip()
        if choice == '':
            break
        if choice.isdigit() and 1 <= int(choice) <= len(MODELS):
            model = MODELS[int(choice) - 1]
            break

    print(f"\nPrompt (Enter to keep current, at least {MIN_PROMPT_LENGTH} characters):")
    prompt = current.prompt
    while True:
        entered = input("> ").strip()
        if not entered:
            break
        if len(entered) >= MIN_PROMPT_LENGTH:
            prompt = entered.replace('\\n', '\n')
            break
        print(dim(f"  Too short, use at least {MIN_PROMPT_LENGTH} characters"))

    config = Config(
        api_key=api_key,
        model=model,
        prompt=prompt,
        max_tokens=current.max_tokens,
        max_request_chars=current.max_request_chars,
        endpoint=current.endpoint,
        timeout=current.timeout,
        max_file_display=current.max_file_display,
    )
    path = save_config(config, global_config=True)

    print_success(f"Saved to {path}")
    return 0


def run_install_completion() -> int:
    """Install shell tab completion."""
    shell = os.environ.get('SHELL', '')
    line = 'eval "$(register-python-argcomplete chadcommit)"'

    print(f"\n{bold('Tab Completion Setup')}\n")

    if 'zsh' in shell or 'bash' in shell:
        rc_file = os.path.expanduser('~/.zshrc' if 'zsh' in shell else '~/.bashrc')
        print(f"Add this line to {dim(rc_file)}:\n")
        print(f"  {line}\n")
        print(f"Then run: {dim('source ' + rc_file)}")
    elif sys.platform == 'win32':
        print("For PowerShell, run:\n")
        print("  register-python-argcomplete --shell powershell chadcommit | Out-String | Invoke-Expression\n")
        print("To make it permanent, add the same line to your $PROFILE")
    else:
        print("Run one of these based on your shell:\n")
        print(f"  {dim('# Bash/Zsh')}")
        print(f"  {line}\n")
        print(f"  {dim('# Fish')}")
        print("  register-python-argcomplete --shell fish chadcommit | source")

    print(f"\n{dim('After setup, press TAB to autocomplete flags.')}")
    return 0
