from fastapi import UploadFile, HTTPException

from hwpreader.modules import hwp_module

MODULE_MAP = {
    ".hwp": hwp_module,
}


def _module_for(file: UploadFile):
    filename = (file.filename or "").lower()
    ext = "." + filename.split(".")[-1]
    mod = MODULE_MAP.get(ext)
    if not mod:
        raise HTTPException(415, f"지원하지 않는 확장자: {ext}")
    return mod


async def extract_from_file(file: UploadFile):
    mod = _module_for(file)
    file_bytes = await file.read()
    return mod.extract_text(file_bytes)


async def parse_from_file(file: UploadFile):
    mod = _module_for(file)
    file_bytes = await file.read()
    return mod.parse(file_bytes)
