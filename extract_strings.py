import os
import shutil
import subprocess

from user_settings import GLOBAL_INI_FILENAME

# --- Configuration ---
UNP4K_FILE_FILTER = "global.ini"
EXTRACT_WORK_DIRNAME = "_unp4k"


def run_unp4k(unp4k_path: str, p4k_path: str, output_dir: str, file_filter: str = UNP4K_FILE_FILTER) -> bool:
    """
    Runs unp4k against p4k_path, extracting files matching file_filter into output_dir.
    unp4k writes into its working directory, so it is started inside output_dir.
    Returns True on a zero exit code; a non-zero exit code is printed and
    returns False.
    """
    if not unp4k_path or not os.path.isfile(unp4k_path):
        print(f"ERROR: unp4k not found at '{unp4k_path}'.")
        print("       Set its location with --settings unp4kPath=<path>.")
        return False
    if not p4k_path or not os.path.isfile(p4k_path):
        print(f"ERROR: Game archive not found: {p4k_path}")
        return False

    os.makedirs(output_dir, exist_ok=True)
    cmd_args = [unp4k_path, p4k_path, file_filter]
    print(f"INFO: Running command: {' '.join(cmd_args)}")
    print(f"INFO: Working directory: {output_dir}")
    try:
        process = subprocess.run(cmd_args, cwd=output_dir, capture_output=True, text=True,
                                 encoding='utf-8', errors='replace')
    except OSError as e:
        print(f"ERROR: Could not start unp4k: {e}")
        return False

    if process.stderr:
        print("--- STDERR ---")
        print(process.stderr.strip())
        print("--- END STDERR ---")
    if process.returncode != 0:
        print(f"ERROR: unp4k returned a non-zero exit code: {process.returncode}")
        return False
    return True


def find_extracted_ini(extract_dir: str, language: str):
    """Finds Data/Localization/<language>/global.ini under extract_dir, ignoring case."""
    wanted_tail = ["localization", language.lower(), GLOBAL_INI_FILENAME]
    for root, _, files in os.walk(extract_dir):
        for filename in files:
            if filename.lower() != GLOBAL_INI_FILENAME:
                continue
            rel_parts = os.path.relpath(os.path.join(root, filename), extract_dir).split(os.sep)
            if [part.lower() for part in rel_parts[-3:]] == wanted_tail:
                return os.path.join(root, filename)
    return None


def extract_global_ini(workspace, environment: str):
    """
    Pulls the environment's global.ini out of Data.p4k into the workspace
    source folder. Returns the path of the extracted file, or None when
    unp4k fails or the file is not found in its output.
    """
    settings = workspace.settings
    p4k_path = workspace.p4k_path(environment)
    if p4k_path is None:
        print("ERROR: Game install path is not set. Use --settings gameInstallPath=<path>.")
        return None

    work_dir = os.path.join(workspace.source_dir(environment), EXTRACT_WORK_DIRNAME)
    if os.path.exists(work_dir):
        try:
            shutil.rmtree(work_dir)
        except OSError as e:
            print(f"ERROR: Could not clear {work_dir}: {e}")
            return None

    if not run_unp4k(settings.unp4k_path, p4k_path, work_dir):
        print(f"ERROR: Extraction failed for {environment}.")
        return None

    extracted_path = find_extracted_ini(work_dir, settings.language)
    if extracted_path is None:
        print(f"ERROR: unp4k finished but no {settings.language} {GLOBAL_INI_FILENAME} was found in {work_dir}.")
        return None

    destination = workspace.source_ini_path(environment)
    try:
        os.makedirs(os.path.dirname(destination), exist_ok=True)
        shutil.copyfile(extracted_path, destination)
    except OSError as e:
        print(f"ERROR: Failed to copy extracted file to {destination}: {e}")
        return None
    shutil.rmtree(work_dir, ignore_errors=True)
    print(f"INFO: Extracted {environment} {GLOBAL_INI_FILENAME} to {destination}")
    return destination
