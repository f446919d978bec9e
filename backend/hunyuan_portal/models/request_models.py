"""
Pydantic models for API request validation.

Responsibilities:
- Define schemas for generation payloads sent to the RunPod worker
- Carry the default tuning parameters for each workflow
- Validate the required fields before any network call
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hunyuan_portal.core.errors import InvalidRequestError


class Workflow(str, Enum):
    MESH = "mesh"
    TEXTURE = "texture"
    ENHANCED = "enhanced"

    @property
    def needs_mesh(self) -> bool:
        return self in (Workflow.MESH, Workflow.ENHANCED)

    @property
    def needs_texture(self) -> bool:
        return self in (Workflow.TEXTURE, Workflow.ENHANCED)

    @property
    def needs_decimation(self) -> bool:
        return self is Workflow.ENHANCED


WORKFLOW_VALUES = tuple(w.value for w in Workflow)


class MeshParams(BaseModel):
    model_config = ConfigDict(extra="allow")

    steps: int = 25
    guidance_scale: float = 3.5
    seed: int = 42
    max_facenum: int = 20000
    octree_resolution: int = 224
    num_chunks: int = 3000
    enable_flash_vdm: bool = True
    force_offload: bool = True


class TextureParams(BaseModel):
    model_config = ConfigDict(extra="allow")

    view_size: int = 512
    steps: int = 15
    guidance_scale: float = 3.5
    texture_size: int = 1024
    upscale_albedo: bool = False
    upscale_mr: bool = False
    camera_azimuths: str = "0, 180, 90, 270, 45, 315"
    camera_elevations: str = "0, 0, 0, 0, 30, 30"
    view_weights: str = "1.0, 1.0, 1.0, 1.0, 0.8, 0.8"
    ortho_scale: float = 1.10


class DecimationParams(BaseModel):
    model_config = ConfigDict(extra="allow")

    enable_decimation: bool = False
    target_face_count: int = 15000


class GenerationRequest(BaseModel):
    """
    Payload forwarded to the worker under the ``input`` key.

    ``workflow`` and ``input_image`` are optional at the schema level so that
    missing or unknown values reach ``validate_generation_request`` and are
    reported as a 400 instead of a schema error. Only the fields the caller
    set are forwarded, unknown ones included, so the worker receives the body
    as it was sent.
    """
    model_config = ConfigDict(extra="allow")

    workflow: Optional[str] = None
    input_image: Optional[str] = Field(None, description="Base64 image, without data URL prefix")
    output_name: Optional[str] = None
    vae_model: Optional[str] = None
    diffusion_model: Optional[str] = None
    upload_to_r2: Optional[bool] = None
    keep_local_files: Optional[bool] = None
    remove_background: Optional[bool] = None
    bg_threshold: Optional[float] = None
    bg_use_jit: Optional[bool] = None
    mesh_params: Optional[MeshParams] = None
    texture_params: Optional[TextureParams] = None
    decimation_params: Optional[DecimationParams] = None

    @classmethod
    def for_workflow(
        cls,
        workflow: Workflow,
        input_image: str,
        *,
        mesh_params: Optional[MeshParams] = None,
        texture_params: Optional[TextureParams] = None,
        decimation_params: Optional[DecimationParams] = None,
        **options: Any,
    ) -> "GenerationRequest":
        """
        Build a request carrying exactly the parameter blocks the workflow uses.

        Missing blocks are filled with defaults; blocks the workflow does not
        use are dropped.
        """
        workflow = Workflow(workflow)
        fields: Dict[str, Any] = {
            "workflow": workflow.value,
            "input_image": strip_data_url(input_image),
        }
        if workflow.needs_mesh:
            fields["mesh_params"] = _with_defaults(MeshParams, mesh_params)
        if workflow.needs_texture:
            fields["texture_params"] = _with_defaults(TextureParams, texture_params)
        if workflow.needs_decimation:
            fields["decimation_params"] = _with_defaults(DecimationParams, decimation_params)
        fields.update(options)
        return cls(**fields)

    def to_payload(self) -> Dict[str, Any]:
        """Body for the RunPod ``/run`` call."""
        return {"input": self.model_dump(exclude_unset=True)}


def _with_defaults(model, params: Optional[BaseModel]) -> BaseModel:
    # Every field counts as set, so defaults survive exclude_unset dumps.
    return model.model_validate((params or model()).model_dump())


def parse_generation_request(payload: Any) -> GenerationRequest:
    """
    Build a GenerationRequest from a decoded JSON body.

    Raises:
        InvalidRequestError: If the body does not match the request schema
    """
    try:
        return GenerationRequest.model_validate(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidRequestError(f"Invalid generation request: {problems}") from e


def strip_data_url(image: str) -> str:
    """Remove a ``data:image/...;base64,`` prefix if present."""
    if image and image.startswith("data:") and "," in image:
        return image.split(",", 1)[1]
    return image


def validate_generation_request(request: GenerationRequest) -> Workflow:
    """
    Check the two fields the worker cannot run without.

    Raises:
        InvalidRequestError: If the image is missing or the workflow is unknown
    """
    if not request.input_image:
        raise InvalidRequestError("input_image is required")

    if request.workflow not in WORKFLOW_VALUES:
        raise InvalidRequestError(
            f"workflow must be one of: {', '.join(WORKFLOW_VALUES)}"
        )

    return Workflow(request.workflow)
