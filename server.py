from fastapi import FastAPI, UploadFile, File, Form, HTTPException, Depends, Query, Request
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import asyncio
import logging
from typing import Optional
from agent import AgentClient, build_prompt
from errors import EncodingFailure, InvalidImage, InvalidInput, MissingContent, UpstreamFailure
from imaging import check_extension, filename_stem, prepare_image, screenshot_filename, upload_filename
from normalizer import ExtractionResult, normalize
from settings import Settings, get_settings, settings
from wrt import DEFAULT_STEM, encode

app = FastAPI(docs_url=None, redoc_url=None)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=600
)

SOURCES = ("file", "screenshot")
NO_TEXT_MESSAGE = "No text could be extracted from the image. Try a clearer image with more contrast."
AGENT_FAILED_MESSAGE = "Agent call failed. Please check your image and try again."


class ConversionResponse(BaseModel):
    success: bool
    status_message: str
    source: str
    source_filename: str
    result: ExtractionResult


SAMPLE_RESPONSE = ConversionResponse(
    success=True,
    status_message="Conversion complete! Saved as invoice_2024_0847.wrt",
    source="file",
    source_filename="sample_invoice.png",
    result=ExtractionResult(
        text="""INVOICE #2024-0847

From: Acme Corporation
      123 Business Avenue
      San Francisco, CA 94102

To:   Widget Industries
      456 Commerce Street
      New York, NY 10001

Date: February 15, 2024
Due:  March 15, 2024

Description                    Qty    Unit Price    Total
-------------------------------------------------------
Widget Assembly Kit             10     $45.00      $450.00
Premium Connector Pack           5     $28.50      $142.50
Industrial Mounting Bracket      3     $67.00      $201.00
Calibration Service              1    $150.00      $150.00

                              Subtotal:            $943.50
                              Tax (8.5%):           $80.20
                              TOTAL:             $1,023.70

Payment Terms: Net 30
Thank you for your business.""",
        status="success",
        message="Text extraction completed successfully. Output saved as invoice_2024_0847.wrt",
        filename="invoice_2024_0847",
        word_count=87,
    ),
)


def get_agent_client() -> AgentClient:
    return AgentClient(
        settings.AGENT_API_URL,
        api_key=settings.AGENT_API_KEY,
        timeout=settings.AGENT_TIMEOUT,
    )


def conversion_message(result: ExtractionResult) -> str:
    # Usable text means success, whatever the agent put in "status"
    if result.is_usable:
        return f"Conversion complete! Saved as {result.filename or 'output'}.wrt"
    return result.message or NO_TEXT_MESSAGE


async def read_upload(image: UploadFile, limit: int) -> bytes:
    data = bytearray()
    while chunk := await image.read(8192):  # 8KB chunks
        data.extend(chunk)
        if len(data) > limit:
            raise HTTPException(413, f"Image exceeds {limit} bytes")
    return bytes(data)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.post("/ocr", response_model=ConversionResponse)
async def ocr_endpoint(
    image: UploadFile = File(...),
    source: str = Form("file", description="'file' for an uploaded image, 'screenshot' for a screen capture"),
    client: AgentClient = Depends(get_agent_client),
    config: Settings = Depends(get_settings),
):
    """Upload an image to the OCR agent and normalize what comes back"""
    try:
        if source not in SOURCES:
            raise HTTPException(400, f"Unknown source: {source}")

        filename = screenshot_filename() if source == "screenshot" else (image.filename or "")
        check_extension(filename)

        image_bytes = await read_upload(image, config.MAX_UPLOAD_BYTES)
        if not image_bytes:
            raise HTTPException(400, "Empty image file")
        image_bytes, content_type = await asyncio.to_thread(
            prepare_image, image_bytes, config.MAX_IMAGE_DIMENSION
        )

        upload = await client.upload_asset(upload_filename(filename, content_type), image_bytes, content_type)
        if not upload.success or not upload.asset_ids:
            raise UpstreamFailure(f"Upload failed: {upload.error or 'Could not upload image'}. Please try again.")

        try:
            result = await asyncio.wait_for(
                client.call_agent(build_prompt(filename), config.AGENT_ID, upload.asset_ids),
                timeout=config.AGENT_TIMEOUT
            )
        except asyncio.TimeoutError:
            raise HTTPException(408, "OCR agent timeout")

        logging.debug(f"Full agent response: {result.model_dump_json(indent=2)}")
        if not result.success:
            raise UpstreamFailure(result.error or AGENT_FAILED_MESSAGE)

        extraction = normalize(result.response, filename_stem(filename), result.raw_response)
        logging.debug(f"Extracted data: {extraction}")

        return ConversionResponse(
            success=extraction.is_usable,
            status_message=conversion_message(extraction),
            source=source,
            source_filename=filename,
            result=extraction,
        )

    except HTTPException:
        raise
    except InvalidImage as e:
        raise HTTPException(400, str(e))
    except UpstreamFailure as e:
        logging.warning(f"Upstream failure: {str(e)}")
        raise HTTPException(502, str(e))
    except Exception as e:
        logging.error(f"OCR Error: {str(e)}", exc_info=True)
        raise HTTPException(500, f"OCR processing failed: {str(e)}")


@app.get("/api/sample", response_model=ConversionResponse)
async def sample_endpoint():
    return SAMPLE_RESPONSE


@app.get("/api/download")
async def download_info():
    return {"status": "ok", "message": "Use POST with { content, filename } to download a .wrt file"}


@app.post("/api/download")
async def download_endpoint(
    request: Request,
    variant: Optional[str] = Query(None, description="'notepad-compatible' (default) or 'plain'"),
    config: Settings = Depends(get_settings),
):
    """Turn extracted text into a .wrt attachment"""
    try:
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse({"error": "Request body must be JSON"}, status_code=400)
        if not isinstance(body, dict):
            return JSONResponse({"error": "Request body must be a JSON object"}, status_code=400)

        content = body.get("content")
        if not isinstance(content, str) or not content.strip():
            raise MissingContent("Content is required")
        filename = body.get("filename")

        try:
            payload = encode(
                content,
                filename if isinstance(filename, str) else DEFAULT_STEM,
                variant or config.DOWNLOAD_VARIANT,
            )
        except InvalidInput as e:
            return JSONResponse({"error": str(e)}, status_code=400)
        except Exception as e:
            raise EncodingFailure(str(e)) from e

        return Response(content=payload.content, media_type=payload.content_type, headers=payload.headers())

    except MissingContent as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except Exception as e:
        logging.error(f"Download Error: {str(e)}", exc_info=True)
        return JSONResponse({"error": "Download failed"}, status_code=500)


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        workers=1,
        limit_max_requests=200,
        timeout_keep_alive=30,
        log_level=settings.LOG_LEVEL.lower(),
        loop="asyncio",
        reload=False
    )
