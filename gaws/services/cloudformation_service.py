"""CloudFormation template validation over the Query protocol."""

from dataclasses import dataclass, field

from gaws.config import get_logger
from gaws.errors import MalformedResponseError
from gaws.services.query import QueryService, find_text

logger = get_logger(__name__)


@dataclass
class TemplateParameter:
    parameter_key: str
    default_value: str = ""
    no_echo: bool = False
    description: str = ""


@dataclass
class TemplateValidation:
    """Result of ValidateTemplate."""
    description: str = ""
    parameters: list[TemplateParameter] = field(default_factory=list)
    capabilities: list[str] = field(default_factory=list)
    capabilities_reason: str = ""
    declared_transforms: list[str] = field(default_factory=list)
    request_id: str = ""


class Template:
    """A template given either inline or by S3 URL."""

    def __init__(self, service: "CloudFormationService", body: str | None = None, url: str | None = None):
        if bool(body) == bool(url):
            raise ValueError("Exactly one of template body or template URL is required")
        self.service = service
        self.body = body
        self.url = url

    def validate(self) -> TemplateValidation:
        """Validate the template (ValidateTemplate).

        Raises AWSError with type ValidationError when the template is invalid.
        """
        logger.info(f"[CFN] Validating template {'from ' + self.url if self.url else '(inline)'}")
        root = self.service._call("ValidateTemplate", {
            "TemplateBody": self.body,
            "TemplateURL": self.url,
        })

        result = root.find("ValidateTemplateResult")
        if result is None:
            raise MalformedResponseError(f"ValidateTemplate response has no result: <{root.tag}>")

        parameters = [
            TemplateParameter(
                parameter_key=find_text(member, "ParameterKey"),
                default_value=find_text(member, "DefaultValue"),
                no_echo=find_text(member, "NoEcho").lower() == "true",
                description=find_text(member, "Description"),
            )
            for member in result.findall("Parameters/member")
        ]
        return TemplateValidation(
            description=find_text(result, "Description"),
            parameters=parameters,
            capabilities=[m.text or "" for m in result.findall("Capabilities/member")],
            capabilities_reason=find_text(result, "CapabilitiesReason"),
            declared_transforms=[m.text or "" for m in result.findall("DeclaredTransforms/member")],
            request_id=find_text(root, "ResponseMetadata/RequestId"),
        )


class CloudFormationService(QueryService):
    """The CloudFormation endpoint of one region."""

    service_name = "cloudformation"
    api_version = "2010-05-15"

    def template(self, body: str | None = None, url: str | None = None) -> Template:
        return Template(self, body=body, url=url)

    def validate_template(self, body: str | None = None, url: str | None = None) -> TemplateValidation:
        return self.template(body=body, url=url).validate()
