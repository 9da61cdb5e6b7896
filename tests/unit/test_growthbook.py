import aws_cdk as core
import aws_cdk.assertions as assertions
import pytest

from dead_mans_switch.dead_mans_switch_stack import DeadMansSwitchStack

GROWTHBOOK_SETTINGS = {
    "hosted_zone_name": "example.com",
    "hosted_zone_id": "Z0123456789ABCDEFGHIJ",
    "growthbook_host": "growthbook",
    "email_host": "smtp.example.com",
    "email_port": "587",
    "email_from_address": "growthbook@example.com",
}


@pytest.fixture(scope="module")
def template():
    app = core.App()
    stack = DeadMansSwitchStack(
        app, "dead-mans-switch",
        notification_url="https://pipedream.com",
        growthbook_settings=GROWTHBOOK_SETTINGS,
    )
    return assertions.Template.from_stack(stack)


def container_definition(template):
    task_definitions = template.find_resources("AWS::ECS::TaskDefinition")
    assert len(task_definitions) == 1
    (task_definition,) = task_definitions.values()
    (container,) = task_definition["Properties"]["ContainerDefinitions"]
    return container


def test_pipeline_still_present(template):
    template.resource_count_is("AWS::DynamoDB::Table", 1)
    template.resource_count_is("AWS::SNS::Subscription", 1)


def test_service_and_certificate_created(template):
    template.resource_count_is("AWS::ECS::Service", 1)
    template.has_resource_properties("AWS::ECS::Service", {
        "ServiceName": "growthbook",
        "DesiredCount": 1,
        "LaunchType": "FARGATE",
    })
    template.has_resource_properties("AWS::CertificateManager::Certificate", {
        "DomainName": "growthbook.example.com",
        "ValidationMethod": "DNS",
    })
    template.resource_count_is("AWS::Route53::RecordSet", 1)


def test_https_listeners_for_ui_and_api(template):
    template.resource_count_is("AWS::ElasticLoadBalancingV2::LoadBalancer", 1)
    template.resource_count_is("AWS::ElasticLoadBalancingV2::Listener", 2)
    for port in (443, 3100):
        template.has_resource_properties("AWS::ElasticLoadBalancingV2::Listener", {
            "Port": port,
            "Protocol": "HTTPS",
        })


def test_container_environment(template):
    container = container_definition(template)
    environment = {item["Name"]: item["Value"] for item in container["Environment"]}

    assert container["Image"] == "growthbook/growthbook:latest"
    assert environment == {
        "APP_ORIGIN": "https://growthbook.example.com",
        "API_HOST": "https://growthbook.example.com:3100",
        "NODE_ENV": "production",
        "EMAIL_ENABLED": "true",
        "EMAIL_HOST": "smtp.example.com",
        "EMAIL_PORT": "587",
        "EMAIL_FROM": "growthbook@example.com",
    }
    assert sorted(mapping["ContainerPort"] for mapping in container["PortMappings"]) == [3000, 3100]


def test_container_secrets(template):
    container = container_definition(template)

    assert sorted(secret["Name"] for secret in container["Secrets"]) == [
        "EMAIL_HOST_PASSWORD",
        "EMAIL_HOST_USER",
        "ENCRYPTION_KEY",
        "JWT_SECRET",
        "MONGODB_URI",
    ]


def test_autoscaling_on_cpu_and_memory(template):
    template.has_resource_properties("AWS::ApplicationAutoScaling::ScalableTarget", {
        "MinCapacity": 1,
        "MaxCapacity": 5,
        "ScalableDimension": "ecs:service:DesiredCount",
    })
    template.resource_count_is("AWS::ApplicationAutoScaling::ScalingPolicy", 2)
    for metric in ("ECSServiceAverageCPUUtilization", "ECSServiceAverageMemoryUtilization"):
        template.has_resource_properties("AWS::ApplicationAutoScaling::ScalingPolicy", {
            "PolicyType": "TargetTrackingScaling",
            "TargetTrackingScalingPolicyConfiguration": {
                "PredefinedMetricSpecification": {"PredefinedMetricType": metric},
                "TargetValue": 50,
            },
        })


def test_hosted_zone_looked_up_by_name_without_id():
    app = core.App()
    settings = {key: value for key, value in GROWTHBOOK_SETTINGS.items() if key != "hosted_zone_id"}
    stack = DeadMansSwitchStack(
        app, "dead-mans-switch-lookup",
        notification_url="https://pipedream.com",
        growthbook_settings=settings,
        env=core.Environment(account="123456789012", region="us-east-1"),
    )
    template = assertions.Template.from_stack(stack)

    # without cached context the lookup resolves to a placeholder zone
    template.has_resource_properties("AWS::CertificateManager::Certificate", {
        "DomainName": "growthbook.example.com",
        "DomainValidationOptions": [
            {
                "DomainName": "growthbook.example.com",
                "HostedZoneId": assertions.Match.any_value(),
            }
        ],
    })
    template.has_resource_properties("AWS::Route53::RecordSet", {
        "Name": "growthbook.example.com.",
        "Type": "A",
    })
